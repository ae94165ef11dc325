from toolloop.tools.base import FunctionNotFound, ToolResult
from toolloop.tools.results import (
    CallStatus,
    ResultKind,
    ToolCallRecord,
    ToolCallResult,
    abort_executing,
    fold_results,
)
from toolloop.tools.router import ToolCall


def test_result_template():
    result = ToolCallResult(call="sum(2, 3)", result="5.0")
    assert result.description == (
        "Below is the result produced by the tool call: `sum(2, 3)`.\n"
        "```tool_call_result\n5.0\n```"
    )


def test_error_template():
    result = ToolCallResult(call="divide(1, 0)", result="Division by zero", kind=ResultKind.ERROR)
    assert result.description == (
        "The function call `divide(1, 0)` failed, producing the error below.\n"
        "```tool_call_error\nDivision by zero\n```"
    )


def test_absent_result_renders_null():
    assert "```tool_call_result\nnull\n```" in ToolCallResult(call="noop", result=None).description


def test_from_outcome_uses_encoded_call():
    call = ToolCall("sum", {"a": 2})
    ok = ToolCallResult.from_outcome(call, ToolResult.ok("2.0"))
    assert ok.kind is ResultKind.RESULT
    assert ok.call == '{"function_call": {"name": "sum", "arguments": {"a": 2}}}'
    failed = ToolCallResult.from_outcome(call, ToolResult.fail(FunctionNotFound("sum")))
    assert failed.kind is ResultKind.ERROR
    assert failed.result == "The function called is not available."


def test_fold_keeps_order():
    folded = fold_results(
        [ToolCallResult(call="first", result="1"), ToolCallResult(call="second", result="2")]
    )
    parts = folded.split("\n\n")
    assert len(parts) == 2
    assert "`first`" in parts[0]
    assert "`second`" in parts[1]


def test_with_result_keeps_call_and_kind():
    original = ToolCallResult(call="c", result="long", kind=ResultKind.ERROR)
    short = original.with_result("short")
    assert (short.call, short.result, short.kind) == ("c", "short", ResultKind.ERROR)
    assert original.result == "long"


def test_abort_executing_only_touches_running_records():
    done = ToolCallRecord("sum")
    done.mark_finished("5.0")
    running = ToolCallRecord("search")
    assert abort_executing([done, running]) == 1
    assert done.status is CallStatus.SUCCEEDED
    assert running.status is CallStatus.FAILED
    assert running.result
    assert done.id != running.id
