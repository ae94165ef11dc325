"""Utility functions."""

from toolloop.utils.text import REASONING_TAGS, strip_reasoning
from toolloop.utils.tokens import estimate_tokens
from toolloop.utils.truncate import (
    TRUNCATION_SUFFIX,
    find_word_boundary,
    truncate_to_tokens,
)

__all__ = [
    "REASONING_TAGS",
    "TRUNCATION_SUFFIX",
    "estimate_tokens",
    "find_word_boundary",
    "strip_reasoning",
    "truncate_to_tokens",
]
