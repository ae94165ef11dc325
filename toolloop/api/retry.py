"""Retry logic with exponential backoff for model calls."""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx

from toolloop.config.models import RetryConfig

T = TypeVar("T")

# LLMError codes worth another attempt.
RETRYABLE_CODES = frozenset({"timeout", "connection_error", "empty_response"})


@dataclass
class RetryState:
    """State of a retry operation."""

    attempt: int
    last_error: Optional[Exception]
    last_status_code: Optional[int]
    total_delay: float


class RetryHandler:
    """Handles retry logic with exponential backoff."""

    def __init__(self, config: RetryConfig):
        self.config = config

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay with exponential backoff and jitter.

        Args:
            attempt: Current attempt number (1-indexed)

        Returns:
            Delay in seconds with jitter
        """
        exp_delay = self.config.base_delay * (2 ** (attempt - 1))
        delay = min(exp_delay, self.config.max_delay)
        return delay * random.uniform(0.9, 1.1)

    def should_retry(self, error: Exception, attempt: int) -> bool:
        """Determine if we should retry based on the error."""
        if attempt >= self.config.max_attempts:
            return False

        # HTTP error responses are retried by status, other failures by code.
        status_code = getattr(error, "status_code", None)
        if isinstance(status_code, int):
            return status_code in self.config.retry_on_status

        code = getattr(error, "code", None)
        if isinstance(code, str):
            return code in RETRYABLE_CODES

        if isinstance(error, (httpx.ConnectError, httpx.TimeoutException)):
            return True

        return isinstance(error, (ConnectionError, TimeoutError))

    async def execute(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        on_retry: Optional[Callable[[RetryState], None]] = None,
        **kwargs: Any,
    ) -> T:
        """Await ``func`` with retry logic.

        Raises:
            The last exception if all retries fail
        """
        state = RetryState(attempt=0, last_error=None, last_status_code=None, total_delay=0)

        while True:
            state.attempt += 1

            try:
                return await func(*args, **kwargs)
            except Exception as e:
                state.last_error = e

                state.last_status_code = getattr(e, "status_code", None)

                if not self.should_retry(e, state.attempt):
                    raise

                delay = self.calculate_delay(state.attempt)
                state.total_delay += delay

                if on_retry:
                    on_retry(state)

                await asyncio.sleep(delay)


async def with_retry(
    config: RetryConfig,
    func: Callable[..., Awaitable[T]],
    *args: Any,
    on_retry: Optional[Callable[[RetryState], None]] = None,
    **kwargs: Any,
) -> T:
    """Await ``func(*args, **kwargs)`` under ``config``'s retry policy."""
    return await RetryHandler(config).execute(func, *args, on_retry=on_retry, **kwargs)
