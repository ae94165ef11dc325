"""Transport helpers shared by model clients."""

from toolloop.api.retry import RetryHandler, RetryState, with_retry

__all__ = ["RetryHandler", "RetryState", "with_retry"]
