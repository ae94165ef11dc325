"""Helpers for model output text."""

from __future__ import annotations

import re

# Sentinel pairs some models wrap their chain-of-thought in.
REASONING_TAGS: tuple[tuple[str, str], ...] = (
    ("<think>", "</think>"),
    ("<thought>", "</thought>"),
)


def strip_reasoning(text: str) -> str:
    """Remove reasoning blocks from model output.

    Every ``<think>...</think>`` and ``<thought>...</thought>`` block is
    dropped and the remainder trimmed. Output that opens a reasoning block
    it never closes (the model ran out of tokens mid-thought) has no answer
    in it, so an empty string is returned. A tag elsewhere in prose is
    left alone.
    """
    if not text:
        return ""
    for start, end in REASONING_TAGS:
        text = re.sub(re.escape(start) + r".*?" + re.escape(end), "", text, flags=re.DOTALL)
    text = text.strip()
    if text.startswith(tuple(start for start, _ in REASONING_TAGS)):
        return ""
    return text
