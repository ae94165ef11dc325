"""Constrained YES/NO round-trips."""

from __future__ import annotations

import sys
import time
from typing import Any, Dict, List

from toolloop.llm.client import LLMError, ModelFacade
from toolloop.llm.router import Mode, ModelKind
from toolloop.utils.text import strip_reasoning

YES = "YES"
NO = "NO"


def _log(msg: str) -> None:
    ts = time.strftime("%H:%M:%S")
    print(f"[{ts}] [checks] {msg}", file=sys.stderr, flush=True)


async def ask_yes_no(
    model: ModelFacade,
    messages: List[Dict[str, Any]],
    question: str,
    kind: ModelKind = ModelKind.WORKER,
    attempts: int = 3,
    use_reasoning: bool = False,
) -> bool:
    """Ask ``question`` after ``messages`` until the model answers exactly YES or NO.

    Returns False when every attempt is inconclusive.
    """
    prompt = messages + [{"role": "user", "content": question}]
    for attempt in range(1, attempts + 1):
        try:
            response = await model.respond(prompt, kind=kind, mode=Mode.CHAT, use_reasoning=use_reasoning)
        except LLMError as e:
            _log(f"Yes/no check attempt {attempt} failed: {e}")
            continue
        answer = strip_reasoning(response.text)
        if answer in (YES, NO):
            return answer == YES
        _log(f"Yes/no check attempt {attempt} was inconclusive: {answer[:40]!r}")
    return False
