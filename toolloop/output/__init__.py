"""Structured event output."""

from toolloop.output.jsonl import (
    AgentStepEvent,
    CompressionEvent,
    ErrorEvent,
    ToolCompletedEvent,
    ToolStartedEvent,
    emit,
    enable_stdout,
    set_event_callback,
)

__all__ = [
    "AgentStepEvent",
    "CompressionEvent",
    "ErrorEvent",
    "ToolCompletedEvent",
    "ToolStartedEvent",
    "emit",
    "enable_stdout",
    "set_event_callback",
]
