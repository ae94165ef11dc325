"""
Deterministic suffix truncation against a token budget.

Used as the backstop of the context compressor: whatever the worker model
returns, the text handed back to the conversation fits the threshold.
"""

from __future__ import annotations

from toolloop.utils.tokens import estimate_tokens, max_chars_for_tokens

TRUNCATION_SUFFIX = "... [truncated]"

# How far back (in characters) we look for a word boundary before giving up
# and cutting mid-word.
_BOUNDARY_WINDOW = 50


def find_word_boundary(text: str, pos: int, forward: bool = False) -> int:
    """Find word boundary near position."""
    if pos >= len(text):
        return len(text)

    if forward:
        for i in range(pos, min(len(text), pos + _BOUNDARY_WINDOW)):
            if text[i] in " \n":
                return i
    else:
        for i in range(min(pos, len(text)) - 1, max(0, pos - _BOUNDARY_WINDOW) - 1, -1):
            if text[i] in " \n":
                return i + 1

    return pos


def truncate_to_tokens(text: str, max_tokens: int, suffix: str = TRUNCATION_SUFFIX) -> str:
    """Cut the end of ``text`` until its estimate is at most ``max_tokens``.

    The cut snaps back to a word boundary when one is close, and ``suffix``
    marks the removal when there is room for it.

    Args:
        text: Text to truncate.
        max_tokens: Token budget; 0 or less yields an empty string.
        suffix: Marker appended after the cut.

    Returns:
        The original text when it already fits, else a truncated copy.
    """
    if estimate_tokens(text) <= max_tokens:
        return text
    budget = max_chars_for_tokens(max_tokens)
    if budget == 0:
        return ""
    if budget <= len(suffix):
        return text[:budget]

    cut = budget - len(suffix)
    boundary = find_word_boundary(text, cut, forward=False)
    if boundary <= 0:
        boundary = cut
    return text[:boundary].rstrip() + suffix
