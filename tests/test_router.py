import json
from types import SimpleNamespace

import pytest

from toolloop.tools.base import ToolCallDecodeError
from toolloop.tools.router import (
    MalformedToolCall,
    ToolCall,
    ToolRouter,
    encode_tool_call,
    extract_tool_calls,
    parse_tool_call,
    recover_arguments,
)


def test_both_keys_decode_to_equal_calls():
    canonical = parse_tool_call('{"function_call": {"name": "sum", "arguments": {"a": 2, "b": 3}}}')
    legacy = parse_tool_call('{"function": {"name": "sum", "arguments": {"a": 2, "b": 3}}}')
    assert canonical == legacy
    assert hash(canonical) == hash(legacy)


def test_canonical_key_wins_when_both_present():
    call = parse_tool_call(
        {"function_call": {"name": "sum", "arguments": {}}, "function": {"name": "multiply"}}
    )
    assert call.name == "sum"


def test_encoding_always_uses_canonical_key():
    call = parse_tool_call({"function": {"name": "sum", "arguments": {"a": 2}}})
    assert json.loads(encode_tool_call(call)) == {
        "function_call": {"name": "sum", "arguments": {"a": 2}}
    }


def test_missing_keys_is_a_structural_error():
    with pytest.raises(ToolCallDecodeError, match="Neither 'function_call' nor 'function' key found"):
        parse_tool_call('{"call": {"name": "sum"}}')


def test_missing_name():
    with pytest.raises(ToolCallDecodeError, match="missing a function name"):
        parse_tool_call({"function_call": {"arguments": {}}})


def test_invalid_json_payload():
    with pytest.raises(ToolCallDecodeError, match="Invalid JSON format"):
        parse_tool_call("{oops")


def test_string_arguments_are_decoded_when_possible():
    call = parse_tool_call({"function_call": {"name": "sum", "arguments": '{"a": 1}'}})
    assert call.arguments == {"a": 1}
    raw = parse_tool_call({"function_call": {"name": "sum", "arguments": "a=1"}})
    assert raw.arguments == "a=1"


def test_arguments_default_to_empty_object():
    assert parse_tool_call({"function_call": {"name": "now"}}).arguments == {}


def test_equality_ignores_everything_but_name_and_arguments():
    assert ToolCall("sum", {"a": 1, "b": 2}) == ToolCall("sum", {"b": 2, "a": 1})
    assert ToolCall("sum", {"a": 1}) != ToolCall("multiply", {"a": 1})
    assert len({ToolCall("sum", {"a": 1}), ToolCall("sum", {"a": 1})}) == 1


def test_extract_inline_call_with_braces_in_strings():
    text = (
        "Let me add these.\n"
        '{"function_call": {"name": "sum", "arguments": {"a": 1, "b": "}"}}}\n'
        "Done."
    )
    found = extract_tool_calls(text, ["sum"])
    assert found.calls == [ToolCall("sum", {"a": 1, "b": "}"})]
    assert found.malformed == []


def test_extract_ignores_unknown_names_and_reasoning():
    text = (
        '<think>{"function_call": {"name": "sum", "arguments": {}}}</think>'
        '{"function": {"name": "launch", "arguments": {}}}'
    )
    assert extract_tool_calls(text, ["sum"]).calls == []


def test_extract_reports_malformed_candidates():
    found = extract_tool_calls('{"function_call": {"arguments": {}}}', ["sum"])
    assert found.calls == []
    assert len(found.malformed) == 1
    assert "missing a function name" in found.malformed[0].error


@pytest.mark.parametrize(
    "raw,expected",
    [
        ('{"a": 1,}', {"a": 1}),
        ("{'a': True}", {"a": True}),
        ('{"a": None}', {"a": None}),
        ('"a": 2', {"a": 2}),
        ('{"arguments": {"a": 1}}', {"a": 1}),
        ('{"arguments": "{\\"a\\": 1}"}', {"a": 1}),
        ("", {}),
        (None, {}),
    ],
)
def test_recover_arguments(raw, expected):
    assert recover_arguments(raw) == expected


@pytest.mark.parametrize("raw", ["[1, 2]", "{{{not json"])
def test_recover_arguments_gives_up(raw):
    with pytest.raises(ToolCallDecodeError):
        recover_arguments(raw)


def test_parse_calls_splits_valid_and_malformed():
    calls, malformed = ToolRouter.parse_calls(
        [
            SimpleNamespace(name="sum", arguments='{"a": 1,}'),
            SimpleNamespace(name="", arguments="{}"),
            SimpleNamespace(name="multiply", arguments="{{{"),
        ]
    )
    assert calls == [ToolCall("sum", {"a": 1})]
    assert [(m.index, m.name) for m in malformed] == [(2, "unknown"), (3, "multiply")]


def test_malformed_feedback_text():
    feedback = MalformedToolCall(2, "sum", "{oops", "Invalid JSON format: boom").feedback()
    assert feedback == (
        "Tool call #2 ('sum') failed to parse.\n\n"
        "Error: Invalid JSON format: boom\n\n"
        "Raw arguments received:\n```json\n{oops\n```\n\n"
        "Please check your tool call format and try again with valid JSON arguments "
        "that match the function's parameter schema."
    )


def test_extract_skips_unclosed_braces():
    text = 'Let me add {a and b. {"function_call": {"name": "sum", "arguments": {"a": 1, "b": 2}}}'
    found = extract_tool_calls(text, ["sum"])
    assert found.calls == [ToolCall("sum", {"a": 1, "b": 2})]


def test_equal_calls_hash_equal_across_number_types():
    integer = ToolCall("sum", {"a": 1})
    floating = ToolCall("sum", {"a": 1.0})
    assert integer == floating
    assert hash(integer) == hash(floating)
    assert len({integer, floating}) == 1


def test_undecodable_bytes_are_a_decode_error():
    with pytest.raises(ToolCallDecodeError, match="Invalid JSON format"):
        parse_tool_call(b'{"function_call": "\xff\xfe"}')
