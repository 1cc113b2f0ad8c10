"""
Rate-limited request queuing module.

Throttles outbound calls to a shared remote API with a bounded, windowed queue.
"""

from ratequeue.queue.request_queue import (
    RequestQueue,
    QueueConfig,
    QueuedTask,
    QueueStats,
)

__all__ = [
    "RequestQueue",
    "QueueConfig",
    "QueuedTask",
    "QueueStats",
]
