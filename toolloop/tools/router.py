"""Tool call parsing, encoding and extraction.

Models issue calls in one of two wire shapes::

    {"function_call": {"name": "...", "arguments": {...}}}
    {"function": {"name": "...", "arguments": {...}}}

Decoding accepts both; encoding always emits ``function_call``. Arguments
stay opaque here; only the capability that receives them knows their shape.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Union

from toolloop.tools.base import ToolCallDecodeError
from toolloop.utils.text import strip_reasoning

CANONICAL_KEY = "function_call"
LEGACY_KEY = "function"
# Decode order: canonical shape first, legacy shape second.
CALL_KEYS = (CANONICAL_KEY, LEGACY_KEY)


@dataclass(frozen=True)
class ToolCall:
    """A model-issued request to invoke one capability.

    Equality considers the name and arguments. The hash uses the name
    alone, since equal arguments can differ in type (``1 == 1.0``).
    """

    name: str
    arguments: Any = field(default_factory=dict)

    def __hash__(self) -> int:
        return hash(self.name)

    def arguments_json(self) -> str:
        if isinstance(self.arguments, str):
            return self.arguments
        return json.dumps(self.arguments, ensure_ascii=False)

    def describe(self) -> str:
        """Canonical text of this call, used in folded results."""
        return encode_tool_call(self)


def _decode_arguments(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    return value


def parse_tool_call(payload: Union[str, bytes, Mapping[str, Any]]) -> ToolCall:
    """Decode a call from either wire shape.

    Raises:
        ToolCallDecodeError: If the payload is not JSON, carries neither call
            key, or the call has no name.
    """
    if isinstance(payload, (str, bytes)):
        try:
            data = json.loads(payload)
        except ValueError as e:
            raise ToolCallDecodeError(f"Invalid JSON format: {e}") from e
    else:
        data = payload

    if not isinstance(data, Mapping):
        raise ToolCallDecodeError("Tool call must be a JSON object")

    for key in CALL_KEYS:
        if key in data:
            body = data[key]
            break
    else:
        raise ToolCallDecodeError("Neither 'function_call' nor 'function' key found in JSON")

    if not isinstance(body, Mapping):
        raise ToolCallDecodeError(f"'{key}' must be a JSON object")
    name = body.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ToolCallDecodeError("Tool call is missing a function name")

    arguments = _decode_arguments(body.get("arguments", {}))
    if arguments is None:
        arguments = {}
    return ToolCall(name=name.strip(), arguments=arguments)


def encode_tool_call(call: ToolCall) -> str:
    """Encode under the canonical key regardless of the decoded shape."""
    return json.dumps(
        {CANONICAL_KEY: {"name": call.name, "arguments": call.arguments}},
        ensure_ascii=False,
    )


# =============================================================================
# Malformed calls and argument recovery
# =============================================================================


@dataclass
class MalformedToolCall:
    """A call the model issued that could not be turned into a ToolCall."""

    index: int
    name: str
    raw_arguments: str
    error: str

    def feedback(self) -> str:
        """Correction text sent back so the model can retry."""
        return (
            f"Tool call #{self.index} ('{self.name}') failed to parse.\n\n"
            f"Error: {self.error}\n\n"
            f"Raw arguments received:\n```json\n{self.raw_arguments}\n```\n\n"
            "Please check your tool call format and try again with valid JSON arguments "
            "that match the function's parameter schema."
        )


_TRAILING_COMMA = re.compile(r",(\s*[}\]])")
_LITERALS = (
    (re.compile(r"\bTrue\b"), "true"),
    (re.compile(r"\bFalse\b"), "false"),
    (re.compile(r"\bNone\b"), "null"),
    (re.compile(r"\bnil\b"), "null"),
)


def _repairs(text: str) -> Iterable[str]:
    """Progressively repaired variants of argument text."""
    yield text
    text = _TRAILING_COMMA.sub(r"\1", text)
    yield text
    for pattern, replacement in _LITERALS:
        text = pattern.sub(replacement, text)
    yield text
    if '"' not in text:
        text = text.replace("'", '"')
        yield text
    if not text.startswith("{"):
        yield "{" + text + "}"


def recover_arguments(raw: Union[str, Mapping[str, Any], None]) -> dict[str, Any]:
    """Turn model-issued argument text into a JSON object, repairing it if needed.

    Raises:
        ToolCallDecodeError: If no repair produces a JSON object.
    """
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        args: Any = dict(raw)
    else:
        text = raw.strip()
        if not text:
            return {}
        last_error: Optional[Exception] = None
        args = None
        for candidate in _repairs(text):
            try:
                args = json.loads(candidate)
                break
            except json.JSONDecodeError as e:
                last_error = e
        if args is None and last_error is not None:
            raise ToolCallDecodeError(f"Invalid JSON format: {last_error}")

    if not isinstance(args, dict):
        raise ToolCallDecodeError("Tool call arguments must be a JSON object")
    # Some models wrap the arguments a second time.
    if set(args) == {"arguments"} and isinstance(args["arguments"], (dict, str)):
        return recover_arguments(args["arguments"])
    return args


class ToolRouter:
    """Turns structured calls from the model client into ToolCalls."""

    @staticmethod
    def parse_calls(
        function_calls: Optional[Iterable[Any]],
    ) -> tuple[list[ToolCall], list[MalformedToolCall]]:
        if function_calls is None:
            return [], []
        calls: list[ToolCall] = []
        malformed: list[MalformedToolCall] = []
        for idx, fc in enumerate(function_calls, start=1):
            name = (getattr(fc, "name", "") or "").strip()
            raw_args = getattr(fc, "arguments", None)
            raw_text = raw_args if isinstance(raw_args, str) else json.dumps(raw_args or {})
            if not name:
                malformed.append(
                    MalformedToolCall(idx, "unknown", raw_text, "Tool call is missing a function name")
                )
                continue
            try:
                calls.append(ToolCall(name=name, arguments=recover_arguments(raw_args)))
            except ToolCallDecodeError as e:
                malformed.append(MalformedToolCall(idx, name, raw_text, str(e)))
        return calls, malformed


# =============================================================================
# Inline extraction
# =============================================================================


@dataclass
class ExtractedCalls:
    calls: list[ToolCall] = field(default_factory=list)
    malformed: list[MalformedToolCall] = field(default_factory=list)


def _balanced_objects(text: str) -> Iterable[tuple[int, int]]:
    """Yield (start, end) spans of balanced top-level ``{...}`` objects."""
    i = 0
    n = len(text)
    while i < n:
        if text[i] != "{":
            i += 1
            continue
        depth = 0
        in_string = False
        escaped = False
        end = -1
        for j in range(i, n):
            ch = text[j]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
            elif ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    end = j + 1
                    break
        if end == -1:
            # Unclosed brace; a later object may still be complete.
            i += 1
            continue
        yield i, end
        i = end


def extract_tool_calls(text: str, known_names: Iterable[str]) -> ExtractedCalls:
    """Find calls embedded in free model text.

    Reasoning blocks are ignored. A candidate only counts when its name is a
    known capability and appears quoted in the text.
    """
    known = set(known_names)
    visible = strip_reasoning(text)
    found = ExtractedCalls()
    for start, end in _balanced_objects(visible):
        snippet = visible[start:end]
        if not any(f'"{key}"' in snippet for key in CALL_KEYS):
            continue
        try:
            call = parse_tool_call(snippet)
        except ToolCallDecodeError as e:
            found.malformed.append(
                MalformedToolCall(len(found.calls) + len(found.malformed) + 1, "unknown", snippet, str(e))
            )
            continue
        if call.name in known and f'"{call.name}"' in visible:
            found.calls.append(call)
    return found
