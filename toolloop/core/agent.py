"""
Deep-research agent.

A forward-only state machine over ``AgentStep``. Each phase runs in its
step and ends with exactly one advance, so the observed step sequence of a
successful run visits every step once, in order:

1. CHECK_SUFFICIENT_INFORMATION - constrained YES/NO check; if the answer is
   not YES the run returns clarification questions and stops.
2. ANALYZE_PROMPT - synthesize one task prompt from the conversation.
3. SPLIT_SECTIONS - free-form plan, then the plan re-encoded as JSON sections.
4. SEARCH_SECTIONS - per-section research through the tool-call loop, fanned
   out across sections.
5. FIRST_DRAFT - report draft from the task and every section.
6. GENERATE_DIAGRAMS - optional Mermaid diagrams.
7. FINALIZE_REPORT - critique-and-improve pass; its text is the result.

Bounded retries (YES/NO answers, section JSON, drafts) retry immediately.
Fatal failures raise an ``AgentError``; partial sections and drafts are
discarded before any exception leaves ``run``.
"""

from __future__ import annotations

import asyncio
import re
import sys
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from toolloop.config.models import RuntimeConfig
from toolloop.core.checks import ask_yes_no
from toolloop.core.loop import ToolCallLoop
from toolloop.llm.client import LLMError, ModelFacade
from toolloop.llm.router import Mode, ModelKind
from toolloop.output.jsonl import AgentStepEvent, emit
from toolloop.prompts import templates
from toolloop.tools.registry import CapabilityRegistry
from toolloop.utils.text import strip_reasoning


def _log(msg: str) -> None:
    ts = time.strftime("%H:%M:%S")
    print(f"[{ts}] [research] {msg}", file=sys.stderr, flush=True)


class AgentStep(str, Enum):
    """Phases of a research run, in execution order."""

    CHECK_SUFFICIENT_INFORMATION = "check_sufficient_information"
    ANALYZE_PROMPT = "analyze_prompt"
    SPLIT_SECTIONS = "split_sections"
    SEARCH_SECTIONS = "search_sections"
    FIRST_DRAFT = "first_draft"
    GENERATE_DIAGRAMS = "generate_diagrams"
    FINALIZE_REPORT = "finalize_report"

    @property
    def position(self) -> int:
        return list(AgentStep).index(self)

    @property
    def label(self) -> str:
        return _STEP_LABELS[self]

    def next(self) -> "AgentStep":
        steps = list(AgentStep)
        return steps[min(self.position + 1, len(steps) - 1)]


_STEP_LABELS = {
    AgentStep.CHECK_SUFFICIENT_INFORMATION: "Check information",
    AgentStep.ANALYZE_PROMPT: "Analyze the request",
    AgentStep.SPLIT_SECTIONS: "Divide into sections",
    AgentStep.SEARCH_SECTIONS: "Research each section",
    AgentStep.FIRST_DRAFT: "Write initial draft",
    AgentStep.GENERATE_DIAGRAMS: "Create diagrams",
    AgentStep.FINALIZE_REPORT: "Polish and finalize",
}


# =============================================================================
# Errors
# =============================================================================


class AgentError(Exception):
    """A research run failed; its partial state has been discarded."""

    default_message = "Research failed."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)


class AgentPreconditionError(AgentError):
    pass


class NoInstructions(AgentPreconditionError):
    default_message = "No prompt provided."


class FailedToExtractPrompt(AgentPreconditionError):
    default_message = "Failed to extract prompt."


class FailedToParseSections(AgentPreconditionError):
    default_message = "Failed to parse sections."


class FailedToDraftReport(AgentError):
    default_message = "Failed to draft report."


# =============================================================================
# Data
# =============================================================================


class SectionSource(BaseModel):
    url: str
    text: str


class Section(BaseModel):
    """One planned part of the report."""

    model_config = ConfigDict(populate_by_name=True)

    title: str
    description: str
    search_needed: Optional[bool] = Field(default=None, alias="isSearchNeeded")
    key_findings: Optional[str] = None
    sources: List[SectionSource] = Field(default_factory=list)

    def prompt_description(self, number: Optional[int] = None) -> str:
        components: List[str] = []
        if number is not None:
            components.append(f"Section {number}:")
        components.append(f"Title: {self.title}\nDescription: {self.description}")
        if self.key_findings:
            components.append(f"Key Findings: {self.key_findings}")
        if self.sources:
            components.append("Research Results:")
            components.extend(f"    Source: {s.url}\n    Content: {s.text}" for s in self.sources)
        return "\n\n".join(components)


class Diagram(BaseModel):
    filename: str
    description: str
    code: Optional[str] = None


_SECTIONS = TypeAdapter(List[Section])
_SOURCES = TypeAdapter(List[SectionSource])
_DIAGRAMS = TypeAdapter(List[Diagram])

_FENCE = re.compile(r"^```[a-zA-Z]*\s*\n?(.*?)\n?```$", re.DOTALL)


def strip_code_fence(text: str) -> str:
    """Unwrap a reply that is a single fenced code block."""
    text = text.strip()
    match = _FENCE.match(text)
    return match.group(1).strip() if match else text


def decode_sections(text: str) -> List[Section]:
    """Decode the section JSON array; an empty array is rejected."""
    sections = _SECTIONS.validate_json(strip_code_fence(strip_reasoning(text)))
    if not sections:
        raise ValueError("no sections in reply")
    return sections


@dataclass
class AgentResponse:
    """Terminal output of a run."""

    text: str
    finished: bool
    prompt: str = ""
    sections: List[Section] = field(default_factory=list)
    diagrams: List[Diagram] = field(default_factory=list)
    steps: List[AgentStep] = field(default_factory=list)


def _user(text: str) -> Dict[str, Any]:
    return {"role": "user", "content": text}


def _assistant(text: str) -> Dict[str, Any]:
    return {"role": "assistant", "content": text}


# =============================================================================
# Agent
# =============================================================================


class DeepResearchAgent:
    """Runs one research task. Create a new instance per invocation."""

    def __init__(
        self,
        model: ModelFacade,
        messages: Sequence[Dict[str, Any]],
        registry: Optional[CapabilityRegistry] = None,
        config: Optional[RuntimeConfig] = None,
        on_step: Optional[Callable[[AgentStep], None]] = None,
    ):
        self.model = model
        self.messages: List[Dict[str, Any]] = list(messages)
        self.registry = registry
        self.config = config or RuntimeConfig()
        self.on_step = on_step
        self.current_step = AgentStep.CHECK_SUFFICIENT_INFORMATION
        self.observed_steps: List[AgentStep] = []
        self.prompt = ""
        self.sections: List[Section] = []
        self.diagrams: List[Diagram] = []
        self._draft_messages: List[Dict[str, Any]] = []

    @property
    def attempts(self) -> int:
        return self.config.agent.max_attempts

    @property
    def progress(self) -> float:
        return self.current_step.position / len(AgentStep)

    # -----------------------------------------------------------------
    # Step bookkeeping
    # -----------------------------------------------------------------

    def _enter(self, step: AgentStep) -> None:
        if self.observed_steps and step.position < self.current_step.position:
            raise RuntimeError(f"Step cannot move back from {self.current_step.value} to {step.value}")
        self.current_step = step
        self.observed_steps.append(step)
        emit(AgentStepEvent(step=step.value, index=step.position, total=len(AgentStep)))
        if self.on_step is not None:
            self.on_step(step)

    def _advance(self) -> None:
        self._enter(self.current_step.next())

    def _discard_partial_state(self) -> None:
        self.sections = []
        self.diagrams = []
        self._draft_messages = []

    async def _ask(self, messages: List[Dict[str, Any]], mode: Mode = Mode.DEEP_RESEARCH) -> str:
        response = await self.model.respond(
            messages, kind=ModelKind.REGULAR, mode=mode, use_reasoning=True
        )
        return strip_reasoning(response.text)

    # -----------------------------------------------------------------
    # Phases
    # -----------------------------------------------------------------

    async def have_sufficient_information(self) -> bool:
        """YES/NO check; inconclusive answers count as NO."""
        return await ask_yes_no(
            self.model,
            self.messages,
            templates.RESEARCH_SUFFICIENCY_PROMPT,
            kind=ModelKind.REGULAR,
            attempts=self.attempts,
            use_reasoning=True,
        )

    async def write_clarification_questions(self) -> str:
        return await self._ask(self.messages + [_user(templates.CLARIFICATION_PROMPT)])

    async def extract_prompt(self) -> str:
        try:
            prompt = await self._ask(self.messages + [_user(templates.EXTRACT_PROMPT)])
        except LLMError as e:
            raise FailedToExtractPrompt() from e
        if not prompt:
            raise FailedToExtractPrompt()
        return prompt

    async def split_into_sections(self) -> List[Section]:
        """Plan once, then decode the plan as JSON up to ``attempts`` times."""
        messages = [_user(templates.PLAN_PROMPT.format(prompt=self.prompt))]
        plan = await self._ask(messages)
        messages += [_assistant(plan), _user(templates.SECTIONS_JSON_PROMPT)]
        for attempt in range(1, self.attempts + 1):
            try:
                return decode_sections(await self._ask(messages))
            except (ValidationError, ValueError, LLMError) as e:
                _log(f"Failed to parse report sections JSON (attempt {attempt}): {e}")
        raise FailedToParseSections()

    def _needs_research(self, section: Section) -> bool:
        return self.registry is not None and section.search_needed is not False

    async def research_section(self, section: Section) -> Section:
        """Research one section through the tool-call loop."""
        notes = section.prompt_description()
        loop = ToolCallLoop(self.model, self.registry, self.config, mode=Mode.AGENT)
        outcome = await loop.run(
            [_user(templates.SECTION_RESEARCH_PROMPT.format(prompt=self.prompt, notes=notes))]
        )
        research = strip_reasoning(outcome.text)

        sources: List[SectionSource] = []
        sources_prompt = [_user(templates.SOURCES_JSON_PROMPT.format(research=research))]
        for attempt in range(1, self.attempts + 1):
            try:
                text = await self._ask(sources_prompt)
                sources = _SOURCES.validate_json(strip_code_fence(text))
                if sources:
                    break
            except (ValidationError, LLMError) as e:
                _log(f"Failed to parse sources for '{section.title}' (attempt {attempt}): {e}")

        findings = await self._ask(
            [
                _user(
                    templates.KEY_FINDINGS_PROMPT.format(
                        prompt=self.prompt, notes=notes, research=research
                    )
                )
            ]
        )
        return section.model_copy(update={"sources": sources, "key_findings": findings or None})

    async def _research_with_retries(self, section: Section) -> Section:
        """Research a section, leaving it unresearched if every attempt fails."""
        for attempt in range(1, self.attempts + 1):
            try:
                return await self.research_section(section)
            except LLMError as e:
                _log(f"Research of '{section.title}' failed (attempt {attempt}): {e}")
        _log(f"Leaving section '{section.title}' unresearched")
        return section

    async def research_all_sections(self) -> None:
        """Research sections concurrently; any other failure cancels the rest."""
        pending = [i for i, s in enumerate(self.sections) if self._needs_research(s)]
        if not pending:
            return
        _log(f"Researching {len(pending)} of {len(self.sections)} section(s)")
        async with asyncio.TaskGroup() as tg:
            tasks = {i: tg.create_task(self._research_with_retries(self.sections[i])) for i in pending}
        for i, task in tasks.items():
            self.sections[i] = task.result()

    async def write_draft(self) -> str:
        described = "\n\n".join(
            f"```section_{n}_description\n{s.prompt_description(n)}\n```"
            for n, s in enumerate(self.sections, start=1)
        )
        draft_prompt = templates.DRAFT_PROMPT.format(
            prompt=self.prompt, count=len(self.sections), sections=described
        )
        for attempt in range(1, self.attempts + 1):
            try:
                draft = await self._ask([_user(draft_prompt)])
            except LLMError as e:
                _log(f"Draft attempt {attempt} failed: {e}")
                continue
            if draft:
                self._draft_messages = [_user(draft_prompt), _assistant(draft)]
                return draft
        raise FailedToDraftReport()

    async def _draw_diagram(self, diagram: Diagram) -> Optional[Diagram]:
        text = await self._ask(
            [_user(templates.DIAGRAM_PROMPT.format(description=diagram.description))], mode=Mode.CHAT
        )
        code = text.replace("```mermaid", "").replace("```", "").strip()
        if not code:
            return None
        return diagram.model_copy(update={"code": code})

    async def create_diagrams(self) -> List[Diagram]:
        messages = self._draft_messages + [_user(templates.LIST_DIAGRAMS_PROMPT)]
        planned: List[Diagram] = []
        for attempt in range(1, self.attempts + 1):
            try:
                planned = _DIAGRAMS.validate_json(strip_code_fence(await self._ask(messages)))
                break
            except (ValidationError, LLMError) as e:
                _log(f"Failed to parse diagram list (attempt {attempt}): {e}")
        drawn = await asyncio.gather(*(self._draw_diagram(d) for d in planned[:5]))
        return [d for d in drawn if d is not None]

    async def finalize_report(self) -> str:
        components = [templates.FINALIZE_CRITIQUE, templates.FINALIZE_SOURCES]
        if self.diagrams:
            described = "\n\n".join(
                f"Diagram {n}:\nDescription: {d.description}\n```mermaid\n{d.code}\n```"
                for n, d in enumerate(self.diagrams, start=1)
            )
            components.append(templates.FINALIZE_DIAGRAMS.format(diagrams=described))
        components.append(templates.FINALIZE_FORMAT)
        messages = self._draft_messages + [_user("\n\n".join(components))]
        for attempt in range(1, self.attempts + 1):
            try:
                report = await self._ask(messages)
            except LLMError as e:
                _log(f"Finalize attempt {attempt} failed: {e}")
                continue
            if report:
                return report
        raise FailedToDraftReport()

    # -----------------------------------------------------------------
    # Run
    # -----------------------------------------------------------------

    async def run(self) -> AgentResponse:
        """Run the task to completion or to a clarification request.

        Raises:
            NoInstructions: If the last message is not from the user.
            FailedToExtractPrompt: If no task prompt could be synthesized.
            FailedToParseSections: If the section JSON never decoded.
            FailedToDraftReport: If drafting or finalizing failed every attempt.
        """
        if not self.messages or self.messages[-1].get("role") != "user":
            raise NoInstructions()
        try:
            return await self._run()
        except BaseException:
            self._discard_partial_state()
            raise

    async def _run(self) -> AgentResponse:
        self._enter(AgentStep.CHECK_SUFFICIENT_INFORMATION)
        if not await self.have_sufficient_information():
            questions = await self.write_clarification_questions()
            _log("Not enough information, presenting clarification questions")
            return AgentResponse(text=questions, finished=False, steps=list(self.observed_steps))
        self._advance()

        self.prompt = await self.extract_prompt()
        _log(f"Extracted prompt: {self.prompt[:120]}")
        self._advance()

        self.messages = []
        self.sections = await self.split_into_sections()
        _log(f"Planned {len(self.sections)} section(s)")
        self._advance()

        await self.research_all_sections()
        self._advance()

        await self.write_draft()
        self._advance()

        if self.config.agent.diagrams:
            self.diagrams = await self.create_diagrams()
        self._advance()

        report = await self.finalize_report()
        return AgentResponse(
            text=report,
            finished=True,
            prompt=self.prompt,
            sections=list(self.sections),
            diagrams=list(self.diagrams),
            steps=list(self.observed_steps),
        )
