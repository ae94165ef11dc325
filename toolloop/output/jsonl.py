"""
JSONL output format for structured runtime events.

Event Types:
- agent.step: The research agent entered a step
- tool.started: A tool call was dispatched
- tool.completed: A tool call finished (successfully or not)
- compression.applied: A tool result was summarized or truncated
- error: A failure surfaced to the caller

Events go to a thread-local callback when one is set, else to stdout as
JSON lines when stdout output is enabled (``--json`` in the CLI).
"""

from __future__ import annotations

import json
import threading
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, Optional

_tls = threading.local()
_stdout_enabled = False


def set_event_callback(callback: Callable[[Dict[str, Any]], None] | None) -> None:
    """Set an event callback for the current thread. Pass ``None`` to clear."""
    _tls.event_callback = callback


def get_event_callback() -> Callable[[Dict[str, Any]], None] | None:
    """Return the event callback for the current thread, or ``None``."""
    return getattr(_tls, "event_callback", None)


def enable_stdout(enabled: bool = True) -> None:
    """Print events without a callback to stdout."""
    global _stdout_enabled
    _stdout_enabled = enabled


@dataclass
class AgentStepEvent:
    """Emitted when the research agent enters a step."""

    step: str
    index: int
    total: int
    type: str = field(default="agent.step", init=False)


@dataclass
class ToolStartedEvent:
    """Emitted when a tool call is dispatched."""

    call_id: str
    name: str
    arguments: Any
    type: str = field(default="tool.started", init=False)


@dataclass
class ToolCompletedEvent:
    """Emitted when a tool call finishes."""

    call_id: str
    name: str
    status: str
    result: Optional[str] = None
    type: str = field(default="tool.completed", init=False)


@dataclass
class CompressionEvent:
    """Emitted when a tool result is compressed."""

    call: str
    original_tokens: int
    final_tokens: int
    fallback: bool = False
    type: str = field(default="compression.applied", init=False)


@dataclass
class ErrorEvent:
    message: str
    type: str = field(default="error", init=False)


def _write(data: Dict[str, Any]) -> None:
    cb = get_event_callback()
    if cb is not None:
        cb(data)
    elif _stdout_enabled:
        print(json.dumps(data, ensure_ascii=False, default=str), flush=True)


def emit(event) -> None:
    """
    Emit a single JSONL event.

    Args:
        event: Dataclass event to emit
    """
    try:
        data = asdict(event)
    except TypeError as e:
        data = {"type": "error", "message": f"Failed to emit event: {e}"}
    _write(data)
