"""Core configuration and error types."""

from ratequeue.core.errors import (
    RateQueueError,
    QueueClearedError,
    QueueConfigurationError,
    RateLimitError,
    is_rate_limit_error,
)

__all__ = [
    "RateQueueError",
    "QueueClearedError",
    "QueueConfigurationError",
    "RateLimitError",
    "is_rate_limit_error",
]
