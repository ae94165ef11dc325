"""Capabilities, their registry, and the tool-call wire protocol."""

from toolloop.tools.base import (
    CapabilityError,
    Datatype,
    DispatchError,
    FunctionNotFound,
    ParameterDecodeError,
    ParameterSpec,
    PermissionDenied,
    ToolCallDecodeError,
    ToolResult,
)
from toolloop.tools.categories import Category, CategorySelection, configure_selection, get_selection
from toolloop.tools.registry import CapabilityRegistry
from toolloop.tools.results import (
    CallStatus,
    ResultKind,
    ToolCallRecord,
    ToolCallResult,
    fold_results,
)
from toolloop.tools.router import (
    MalformedToolCall,
    ToolCall,
    encode_tool_call,
    extract_tool_calls,
    parse_tool_call,
)
from toolloop.tools.specs import CapabilitySpec

__all__ = [
    "CallStatus",
    "CapabilityError",
    "CapabilityRegistry",
    "CapabilitySpec",
    "Category",
    "CategorySelection",
    "Datatype",
    "DispatchError",
    "FunctionNotFound",
    "MalformedToolCall",
    "ParameterDecodeError",
    "ParameterSpec",
    "PermissionDenied",
    "ResultKind",
    "ToolCall",
    "ToolCallDecodeError",
    "ToolCallRecord",
    "ToolCallResult",
    "ToolResult",
    "configure_selection",
    "encode_tool_call",
    "extract_tool_calls",
    "fold_results",
    "get_selection",
    "parse_tool_call",
]
