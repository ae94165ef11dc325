"""Call records and the text templates results are folded into.

The two templates are a convention the model is prompted against, so their
text must not drift.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Optional

from toolloop.tools.base import ToolResult
from toolloop.tools.router import ToolCall

RESULT_TEMPLATE = "Below is the result produced by the tool call: `{call}`.\n```tool_call_result\n{result}\n```"
ERROR_TEMPLATE = "The function call `{call}` failed, producing the error below.\n```tool_call_error\n{result}\n```"


class ResultKind(str, Enum):
    RESULT = "result"
    ERROR = "error"


@dataclass(frozen=True)
class ToolCallResult:
    """One execution outcome, ready to be folded into context."""

    call: str
    result: Optional[str]
    kind: ResultKind = ResultKind.RESULT

    @classmethod
    def from_outcome(cls, call: ToolCall, outcome: ToolResult) -> "ToolCallResult":
        if outcome.success:
            return cls(call=call.describe(), result=outcome.output, kind=ResultKind.RESULT)
        return cls(call=call.describe(), result=outcome.to_message(), kind=ResultKind.ERROR)

    @property
    def description(self) -> str:
        template = RESULT_TEMPLATE if self.kind is ResultKind.RESULT else ERROR_TEMPLATE
        result = self.result if self.result is not None else "null"
        return template.format(call=self.call, result=result)

    def with_result(self, result: Optional[str]) -> "ToolCallResult":
        return replace(self, result=result)


def fold_results(results: Iterable[ToolCallResult]) -> str:
    """Join folded results in request order."""
    return "\n\n".join(r.description for r in results)


class CallStatus(str, Enum):
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class ToolCallRecord:
    """Append-only trace of one attempted call within a turn."""

    name: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: CallStatus = CallStatus.EXECUTING
    time_called: float = field(default_factory=time.time)
    result: Optional[str] = None

    def mark_finished(self, result: str, succeeded: bool = True) -> None:
        self.result = result
        self.status = CallStatus.SUCCEEDED if succeeded else CallStatus.FAILED

    def abort(self, reason: str = "Cancelled before completion.") -> None:
        """Mark a still-executing record as failed."""
        if self.status is CallStatus.EXECUTING:
            self.mark_finished(reason, succeeded=False)


def abort_executing(records: Iterable[ToolCallRecord]) -> int:
    """Fail every record left executing. Returns how many were aborted."""
    count = 0
    for record in records:
        if record.status is CallStatus.EXECUTING:
            record.abort()
            count += 1
    return count
