import pytest

from toolloop.utils.text import strip_reasoning
from toolloop.utils.tokens import estimate_tokens, max_chars_for_tokens
from toolloop.utils.truncate import TRUNCATION_SUFFIX, find_word_boundary, truncate_to_tokens


def test_estimate_tokens():
    assert estimate_tokens("") == 0
    assert estimate_tokens(None) == 0
    assert estimate_tokens("abc") == 1
    assert estimate_tokens("a" * 400) == 101


def test_max_chars_round_trips_with_estimate():
    for budget in (1, 10, 250):
        chars = max_chars_for_tokens(budget)
        assert estimate_tokens("x" * chars) == budget
        assert estimate_tokens("x" * (chars + 1)) == budget + 1
    assert max_chars_for_tokens(0) == 0


def test_truncate_leaves_fitting_text_alone():
    text = "short text"
    assert truncate_to_tokens(text, 100) is text


@pytest.mark.parametrize("budget", [5, 10, 37, 100])
def test_truncate_respects_budget(budget):
    text = "lorem ipsum dolor sit amet " * 100
    out = truncate_to_tokens(text, budget)
    assert estimate_tokens(out) <= budget
    assert out.endswith(TRUNCATION_SUFFIX)
    assert text.startswith(out[: -len(TRUNCATION_SUFFIX)])


def test_truncate_to_zero():
    assert truncate_to_tokens("some words here", 0) == ""


def test_find_word_boundary():
    text = "hello world again"
    assert find_word_boundary(text, 8) == 6
    assert find_word_boundary(text, 8, forward=True) == 11
    assert find_word_boundary(text, 100) == len(text)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("<think>x</think>YES", "YES"),
        ("  NO \n", "NO"),
        ("<thought>a</thought> B <think>c\nd</think>", "B"),
        ("<think>still going", ""),
        ("", ""),
        ("plain answer", "plain answer"),
    ],
)
def test_strip_reasoning(raw, expected):
    assert strip_reasoning(raw) == expected


def test_reasoning_tag_in_prose_is_kept():
    text = "Wrap scratch work in a <think> tag before answering."
    assert strip_reasoning(text) == text


def test_unclosed_block_after_closed_one_is_unfinished():
    assert strip_reasoning("<thought>a</thought>\n<think>still going") == ""
