"""
Context compression for tool results.

Any single tool result whose estimated token count exceeds the threshold is
summarized by the worker model. Whatever comes back is held to the threshold
with deterministic suffix truncation. Summarization is best-effort: a failed
worker call degrades to truncating the original, it never drops the result
or aborts the batch.
"""

from __future__ import annotations

import asyncio
import sys
import time
from typing import List, Sequence

from toolloop.llm.client import ModelFacade
from toolloop.llm.router import Mode, ModelKind
from toolloop.output.jsonl import CompressionEvent, emit
from toolloop.prompts.templates import COMPRESSION_PROMPT
from toolloop.tools.results import ToolCallResult
from toolloop.utils.text import strip_reasoning
from toolloop.utils.tokens import estimate_tokens
from toolloop.utils.truncate import truncate_to_tokens


def _log(msg: str) -> None:
    ts = time.strftime("%H:%M:%S")
    print(f"[{ts}] [compressor] {msg}", file=sys.stderr, flush=True)


async def summarize(call: str, text: str, threshold: int, model: ModelFacade) -> str:
    """Ask the worker model for a summary of one tool output."""
    prompt = COMPRESSION_PROMPT.format(call=call, result=text, threshold=threshold)
    response = await model.respond(
        [{"role": "user", "content": prompt}],
        kind=ModelKind.WORKER,
        mode=Mode.CHAT,
    )
    return strip_reasoning(response.text)


async def compress_result(result: ToolCallResult, threshold: int, model: ModelFacade) -> ToolCallResult:
    """Compress one result; results within the threshold are returned as is."""
    text = result.result
    if text is None:
        return result
    original_tokens = estimate_tokens(text)
    if original_tokens <= threshold:
        return result

    _log(f"Compressing tool result {result.call[:80]!r} with ~{original_tokens} tokens")
    fallback = False
    try:
        summary = await summarize(result.call, text, threshold, model)
    except Exception as e:
        _log(f"Worker summarization failed ({type(e).__name__}: {e}), truncating the original")
        summary = ""
        fallback = True

    if not summary:
        summary = text
        fallback = True

    if estimate_tokens(summary) > threshold:
        if not fallback:
            _log(f"Summary still ~{estimate_tokens(summary)} tokens, trimming to {threshold}")
        summary = truncate_to_tokens(summary, threshold)

    emit(
        CompressionEvent(
            call=result.call,
            original_tokens=original_tokens,
            final_tokens=estimate_tokens(summary),
            fallback=fallback,
        )
    )
    return result.with_result(summary)


async def compress(
    results: Sequence[ToolCallResult],
    threshold: int,
    model: ModelFacade,
) -> List[ToolCallResult]:
    """Compress every oversized result; order is preserved.

    Args:
        results: Tool call results of one or more turns.
        threshold: Maximum estimated tokens per result.
        model: Facade used for the worker round-trips.

    Returns:
        A new list; entries within the threshold are the same objects.
    """
    if not results:
        return list(results)
    return list(await asyncio.gather(*(compress_result(r, threshold, model) for r in results)))
