"""
ratequeue - Rate-limited request queue for outbound API calls

Admits async work in FIFO order under a concurrency bound and a per-window
admission cap, so every caller sharing one queue respects a single remote
rate limit.
"""

__version__ = "1.0.0"
__author__ = "ratequeue maintainers"

from ratequeue.core.errors import (
    RateQueueError,
    QueueClearedError,
    QueueConfigurationError,
    RateLimitError,
)
from ratequeue.queue.request_queue import (
    RequestQueue,
    QueueConfig,
    QueueStats,
    QueuedTask,
)

__all__ = [
    "RequestQueue",
    "QueueConfig",
    "QueueStats",
    "QueuedTask",
    "RateQueueError",
    "QueueClearedError",
    "QueueConfigurationError",
    "RateLimitError",
]
