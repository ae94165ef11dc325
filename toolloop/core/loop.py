"""
Tool-call loop.

Drives repeated round-trips with the primary model: calls it issues are
parsed, dispatched through the registry, folded into the fixed result
templates and sent back, until it answers without calling a tool.

Per-call failures (unknown tool, bad arguments, capability errors) become
``tool_call_error`` blocks the model can react to. Turns in which every call
is malformed get correction feedback; too many in a row end the loop.
"""

from __future__ import annotations

import asyncio
import sys
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from toolloop.config.models import RuntimeConfig
from toolloop.core.checks import ask_yes_no
from toolloop.core.compressor import compress
from toolloop.llm.client import ContextWindowExceeded, ModelFacade, ModelResponse
from toolloop.llm.router import Mode, ModelKind
from toolloop.output.jsonl import ToolCompletedEvent, ToolStartedEvent, emit
from toolloop.prompts.templates import (
    CONTINUE_PROMPT,
    MALFORMED_LIMIT_MESSAGE,
    ORGANIZE_PROMPT,
    TOOL_SUFFICIENCY_PROMPT,
)
from toolloop.tools.registry import CapabilityRegistry
from toolloop.tools.results import (
    ResultKind,
    ToolCallRecord,
    ToolCallResult,
    abort_executing,
    fold_results,
)
from toolloop.tools.router import MalformedToolCall, ToolCall, ToolRouter, extract_tool_calls
from toolloop.tools.todo import TodoStore

MAX_COMPRESSION_ATTEMPTS = 3


def _log(msg: str) -> None:
    ts = time.strftime("%H:%M:%S")
    print(f"[{ts}] [loop] {msg}", file=sys.stderr, flush=True)


@dataclass
class _Turn:
    """Folded results of one round of calls and where they sit in history."""

    index: int
    results: List[ToolCallResult]
    change_prompt: str


@dataclass
class LoopOutcome:
    """Final answer of a loop run plus its trace."""

    text: str
    finish_reason: str
    iterations: int = 0
    records: List[ToolCallRecord] = field(default_factory=list)
    results: List[ToolCallResult] = field(default_factory=list)
    malformed: List[MalformedToolCall] = field(default_factory=list)


class ToolCallLoop:
    """Round-trip driver between a model and a capability registry."""

    def __init__(
        self,
        model: ModelFacade,
        registry: CapabilityRegistry,
        config: Optional[RuntimeConfig] = None,
        todos: Optional[TodoStore] = None,
        mode: Mode = Mode.AGENT,
    ):
        self.model = model
        self.registry = registry
        self.config = config or RuntimeConfig()
        self.todos = todos
        self.mode = mode
        self.records: List[ToolCallRecord] = []

    # -----------------------------------------------------------------
    # Round-trips
    # -----------------------------------------------------------------

    async def _respond(self, messages: List[Dict[str, Any]]) -> ModelResponse:
        return await self.model.respond(
            messages,
            kind=ModelKind.REGULAR,
            mode=self.mode,
            tools=self.registry.schemas(),
        )

    async def _respond_compressing(
        self,
        messages: List[Dict[str, Any]],
        turns: List[_Turn],
    ) -> ModelResponse:
        """Respond, compressing folded results when the context overflows."""
        attempts = 0
        while True:
            try:
                return await self._respond(messages)
            except ContextWindowExceeded:
                if not self.config.compression.enabled or attempts >= MAX_COMPRESSION_ATTEMPTS:
                    raise
                attempts += 1
                _log(f"Context window exceeded (attempt {attempts}), compressing tool results")
                threshold = self.config.compression.threshold
                for turn in turns:
                    turn.results = await compress(turn.results, threshold, self.model)
                    messages[turn.index] = {
                        "role": "user",
                        "content": self._fold(turn.results, turn.change_prompt),
                    }

    def _extract(self, response: ModelResponse) -> tuple[List[ToolCall], List[MalformedToolCall]]:
        if response.function_calls:
            return ToolRouter.parse_calls(response.function_calls)
        found = extract_tool_calls(response.text, self.registry.names())
        return found.calls, found.malformed

    # -----------------------------------------------------------------
    # Execution and folding
    # -----------------------------------------------------------------

    async def _execute(self, calls: Sequence[ToolCall]) -> List[ToolCallResult]:
        records = [ToolCallRecord(name=c.name) for c in calls]
        self.records.extend(records)
        for record, call in zip(records, calls):
            _log(f"Executing {call.describe()}")
            emit(ToolStartedEvent(call_id=record.id, name=call.name, arguments=call.arguments))

        outcomes = await self.registry.execute_batch(list(calls))

        results: List[ToolCallResult] = []
        for record, call, outcome in zip(records, calls, outcomes):
            record.mark_finished(outcome.to_message(), succeeded=outcome.success)
            emit(
                ToolCompletedEvent(
                    call_id=record.id,
                    name=call.name,
                    status=record.status.value,
                    result=record.result,
                )
            )
            results.append(ToolCallResult.from_outcome(call, outcome))
        return results

    def _fold(self, results: Sequence[ToolCallResult], change_prompt: str) -> str:
        components = [fold_results(results)] if results else []
        summary = self.todos.incomplete_summary() if self.todos else None
        if summary:
            components.append(summary)
        components.append(change_prompt)
        return "\n\n".join(components)

    async def _sufficient(self, messages: List[Dict[str, Any]], results: Sequence[ToolCallResult]) -> bool:
        if self.todos is not None and self.todos.incomplete_summary() is not None:
            return False
        question = TOOL_SUFFICIENCY_PROMPT.format(results=fold_results(results))
        return await ask_yes_no(self.model, messages, question, kind=ModelKind.WORKER)

    # -----------------------------------------------------------------
    # Main loop
    # -----------------------------------------------------------------

    async def run(self, messages: Sequence[Dict[str, Any]]) -> LoopOutcome:
        """Run until the model answers without calling a tool.

        Cancellation propagates; records still executing are marked failed
        first.
        """
        history: List[Dict[str, Any]] = list(messages)
        turns: List[_Turn] = []
        all_results: List[ToolCallResult] = []
        all_malformed: List[MalformedToolCall] = []
        max_iterations = self.config.loop.max_iterations
        max_malformed = self.config.loop.max_consecutive_malformed
        consecutive_malformed = 0
        iterations = 0

        def outcome(text: str, reason: str) -> LoopOutcome:
            return LoopOutcome(
                text=text,
                finish_reason=reason,
                iterations=iterations,
                records=list(self.records),
                results=all_results,
                malformed=all_malformed,
            )

        try:
            response = await self._respond(history)
            while True:
                calls, malformed = self._extract(response)
                if not calls and not malformed:
                    return outcome(response.text, "no_tool_call")

                all_malformed.extend(malformed)
                if malformed and not calls:
                    consecutive_malformed += 1
                    _log(f"All {len(malformed)} tool call(s) malformed ({consecutive_malformed}/{max_malformed})")
                    if consecutive_malformed >= max_malformed:
                        return outcome(MALFORMED_LIMIT_MESSAGE.format(count=max_malformed), "malformed_limit")
                else:
                    consecutive_malformed = 0

                if iterations >= max_iterations:
                    break
                iterations += 1

                results = await self._execute(calls) if calls else []
                results += [
                    ToolCallResult(call=m.name, result=m.feedback(), kind=ResultKind.ERROR)
                    for m in malformed
                ]
                all_results.extend(results)

                assistant_text = response.text or "\n".join(c.describe() for c in calls)
                history.append({"role": "assistant", "content": assistant_text})

                sufficient = await self._sufficient(history, results) if calls else False
                change_prompt = ORGANIZE_PROMPT if sufficient else CONTINUE_PROMPT
                history.append({"role": "user", "content": self._fold(results, change_prompt)})
                turns.append(_Turn(len(history) - 1, results, change_prompt))

                response = await self._respond_compressing(history, turns)

            _log("Maximum number of tool calls reached, falling back to a direct answer")
            final = await self.model.respond(history, kind=ModelKind.REGULAR, mode=Mode.CHAT)
            return outcome(final.text, "max_iterations")
        except asyncio.CancelledError:
            aborted = abort_executing(self.records)
            if aborted:
                _log(f"Cancelled, marked {aborted} in-flight call(s) as failed")
            raise
