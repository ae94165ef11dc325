import asyncio

import pytest
from pydantic import BaseModel

from conftest import FakeModel
from toolloop.config.models import CompressionConfig, LoopConfig, RuntimeConfig
from toolloop.core.loop import ToolCallLoop
from toolloop.llm.client import ContextWindowExceeded, FunctionCall, ModelResponse
from toolloop.llm.router import Mode, ModelKind
from toolloop.prompts.templates import (
    CONTINUE_PROMPT,
    MALFORMED_LIMIT_MESSAGE,
    ORGANIZE_PROMPT,
)
from toolloop.tools.base import Datatype, ParameterSpec
from toolloop.tools.registry import CapabilityRegistry
from toolloop.tools.results import CallStatus, ResultKind
from toolloop.tools.specs import CapabilitySpec
from toolloop.tools.todo import TodoStore

USER = [{"role": "user", "content": "What is 2 + 3?"}]


def _call(name, arguments, call_id="call_1"):
    return ModelResponse(function_calls=[FunctionCall(id=call_id, name=name, arguments=arguments)])


class EmptyArgs(BaseModel):
    pass


class EchoArgs(BaseModel):
    words: int


ECHO = CapabilitySpec(
    name="echo",
    description="Repeats a word.",
    params=(ParameterSpec("words", "How many words", Datatype.INTEGER),),
    args_model=EchoArgs,
    func=lambda args: "word " * args.words,
)


@pytest.mark.asyncio
async def test_answer_without_tool_call(registry):
    model = FakeModel(["Hello there."])
    outcome = await ToolCallLoop(model, registry).run(USER)
    assert outcome.text == "Hello there."
    assert outcome.finish_reason == "no_tool_call"
    assert outcome.iterations == 0
    assert model.calls[0].kind is ModelKind.REGULAR
    assert model.calls[0].mode is Mode.AGENT
    assert [t["function"]["name"] for t in model.calls[0].tools] == registry.names()


@pytest.mark.asyncio
async def test_single_call_then_answer(registry, events):
    model = FakeModel([_call("sum", '{"a": 2, "b": 3}'), "YES", "The answer is 5.0"])
    loop = ToolCallLoop(model, registry)
    outcome = await loop.run(USER)

    assert outcome.text == "The answer is 5.0"
    assert outcome.finish_reason == "no_tool_call"
    assert outcome.iterations == 1
    assert [r.status for r in outcome.records] == [CallStatus.SUCCEEDED]
    assert outcome.results[0].result == "5.0"
    assert outcome.results[0].kind is ResultKind.RESULT

    assert model.calls[1].kind is ModelKind.WORKER
    folded = model.calls[2].messages[-1]["content"]
    assert "```tool_call_result\n5.0\n```" in folded
    assert folded.endswith(ORGANIZE_PROMPT)
    assert [e["type"] for e in events] == ["tool.started", "tool.completed"]
    # The caller's history is not mutated.
    assert len(USER) == 1


@pytest.mark.asyncio
async def test_failed_call_is_folded_as_error(registry):
    model = FakeModel([_call("divide", '{"a": 1}'), "NO", "I cannot divide."])
    outcome = await ToolCallLoop(model, registry).run(USER)
    assert outcome.records[0].status is CallStatus.FAILED
    folded = model.calls[2].messages[-1]["content"]
    assert "```tool_call_error\nThe function called is not available.\n```" in folded
    assert folded.endswith(CONTINUE_PROMPT)


@pytest.mark.asyncio
async def test_inline_calls_in_text_are_dispatched(registry):
    inline = 'Let me add.\n{"function": {"name": "sum", "arguments": {"a": 1, "b": 1}}}'
    model = FakeModel([inline, "YES", "2.0"])
    outcome = await ToolCallLoop(model, registry).run(USER)
    assert outcome.results[0].result == "2.0"
    assert model.calls[2].messages[-2] == {"role": "assistant", "content": inline}


@pytest.mark.asyncio
async def test_malformed_calls_stop_after_limit(registry):
    model = FakeModel([_call("sum", "{{{not json")] * 3)
    outcome = await ToolCallLoop(model, registry).run(USER)
    assert outcome.finish_reason == "malformed_limit"
    assert outcome.text == MALFORMED_LIMIT_MESSAGE.format(count=3)
    assert len(model.calls) == 3
    assert len(outcome.malformed) == 3
    assert outcome.records == []
    feedback = model.calls[1].messages[-1]["content"]
    assert "Tool call #1 ('sum') failed to parse." in feedback
    assert feedback.endswith(CONTINUE_PROMPT)


@pytest.mark.asyncio
async def test_malformed_streak_resets_on_valid_call(registry):
    bad = _call("sum", "{{{")
    model = FakeModel([bad, bad, _call("sum", '{"a": 1}'), "YES", bad, bad, "done"])
    outcome = await ToolCallLoop(model, registry).run(USER)
    assert outcome.finish_reason == "no_tool_call"
    assert outcome.text == "done"


@pytest.mark.asyncio
async def test_max_iterations_falls_back_to_direct_answer(registry):
    config = RuntimeConfig(loop=LoopConfig(max_iterations=2))
    call = _call("sum", '{"a": 1}')
    model = FakeModel([call, "NO", call, "NO", call, "Best effort answer."])
    outcome = await ToolCallLoop(model, registry, config).run(USER)
    assert outcome.finish_reason == "max_iterations"
    assert outcome.text == "Best effort answer."
    assert outcome.iterations == 2
    assert len(outcome.records) == 2
    assert model.calls[-1].mode is Mode.CHAT


@pytest.mark.asyncio
async def test_context_overflow_compresses_and_retries(registry):
    registry.register(ECHO)
    config = RuntimeConfig(compression=CompressionConfig(threshold=20))
    model = FakeModel(
        [
            _call("echo", '{"words": 200}'),
            "YES",
            ContextWindowExceeded("too long"),
            "Echoed two hundred words.",
            "It said word a lot.",
        ]
    )
    outcome = await ToolCallLoop(model, registry, config).run(USER)
    assert outcome.text == "It said word a lot."
    assert model.calls[3].kind is ModelKind.WORKER
    retried = model.calls[4].messages[-1]["content"]
    assert "```tool_call_result\nEchoed two hundred words.\n```" in retried
    assert "word word word word" not in retried


@pytest.mark.asyncio
async def test_context_overflow_without_compression_propagates(registry):
    registry.register(ECHO)
    config = RuntimeConfig(compression=CompressionConfig(enabled=False))
    model = FakeModel([_call("echo", '{"words": 5}'), "YES", ContextWindowExceeded("too long")])
    with pytest.raises(ContextWindowExceeded):
        await ToolCallLoop(model, registry, config).run(USER)


@pytest.mark.asyncio
async def test_incomplete_todos_skip_sufficiency_check(selection):
    todos = TodoStore()
    registry = CapabilityRegistry(todos.capabilities(), selection=selection)
    create = _call(
        "create_todo_list",
        '{"list_id": "plan", "title": "Plan", "items": ["look up", "answer"]}',
    )
    model = FakeModel([create, "Here is my plan."])
    outcome = await ToolCallLoop(model, registry, todos=todos).run(USER)
    assert outcome.text == "Here is my plan."
    folded = model.calls[1].messages[-1]["content"]
    assert "Active To-Do Lists (Incomplete Items):" in folded
    assert "To-Do List: Plan (ID: plan)" in folded
    assert folded.endswith(CONTINUE_PROMPT)


@pytest.mark.asyncio
async def test_cancellation_marks_in_flight_calls_failed(registry):
    started = asyncio.Event()

    async def hang(args):
        started.set()
        await asyncio.Event().wait()

    registry.register(
        CapabilitySpec(name="hang", description="Never returns.", params=(), args_model=EmptyArgs, func=hang)
    )
    loop = ToolCallLoop(FakeModel([_call("hang", "{}")]), registry)
    task = asyncio.create_task(loop.run(USER))
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert [r.status for r in loop.records] == [CallStatus.FAILED]
