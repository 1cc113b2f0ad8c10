"""
Exception types for ratequeue.

Errors raised by submitted work are never wrapped; these types only cover what
the queue itself produces, plus the rate-limit error callers raise from work.
"""

from __future__ import annotations

import re


class RateQueueError(Exception):
    """Base exception for ratequeue errors."""


class QueueClearedError(RateQueueError):
    """Raised into a pending task's future when the queue is cleared."""

    def __init__(self, message: str = "Queue cleared", task_id: str | None = None):
        super().__init__(message)
        self.task_id = task_id


class QueueConfigurationError(RateQueueError, ValueError):
    """Raised when a queue is constructed with invalid limits."""


class RateLimitError(RateQueueError):
    """Raised by work when the remote API rejects a call with HTTP 429."""

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.status_code = 429
        self.retry_after = retry_after


_RATE_LIMIT_PATTERN = re.compile(r"\b429\b|rate limit|quota", re.IGNORECASE)


def is_rate_limit_error(exc: BaseException) -> bool:
    """Check whether an exception looks like a remote rate-limit rejection."""
    if isinstance(exc, RateLimitError):
        return True
    if getattr(exc, "status_code", None) == 429:
        return True
    return _RATE_LIMIT_PATTERN.search(str(exc)) is not None
