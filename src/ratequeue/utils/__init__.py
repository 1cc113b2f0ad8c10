"""Utility modules for ratequeue."""

from ratequeue.utils.logging import setup_logging, get_logger
from ratequeue.utils.metrics import QueueMetrics, QueueCounters
from ratequeue.utils.retry import with_retry, RetryConfig, resubmit_with_retry

__all__ = [
    "setup_logging",
    "get_logger",
    "QueueMetrics",
    "QueueCounters",
    "with_retry",
    "RetryConfig",
    "resubmit_with_retry",
]
