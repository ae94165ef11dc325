"""Token estimation.

A character-based heuristic (~4 characters per token). It is cheap, stable
across models and deterministic, which the compressor's threshold checks rely
on.
"""

from __future__ import annotations

from typing import Optional


def estimate_tokens(text: Optional[str], model: Optional[str] = None) -> int:
    """Estimate token count for text.

    Args:
        text: Text to estimate tokens for.
        model: Optional model name (unused, kept for per-model tokenizers).

    Returns:
        Estimated token count, 0 for empty text.
    """
    if not text:
        return 0
    return (len(text) // 4) + 1


def max_chars_for_tokens(max_tokens: int) -> int:
    """Largest character count whose estimate stays within ``max_tokens``."""
    if max_tokens <= 0:
        return 0
    return max_tokens * 4 - 1
