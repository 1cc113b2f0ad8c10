"""
Metrics collection for request queues.

Tracks lifetime counters and admission wait times for a single queue.
"""

from __future__ import annotations

from dataclasses import dataclass
from threading import Lock
from typing import Any


@dataclass
class QueueCounters:
    """Lifetime counters for one queue."""

    total_submitted: int = 0
    total_completed: int = 0
    total_failed: int = 0
    total_cleared: int = 0
    total_dropped: int = 0
    throttle_waits: int = 0
    total_admitted: int = 0
    total_wait_time_ms: float = 0.0

    @property
    def avg_wait_time_ms(self) -> float:
        """Average time between submission and admission."""
        if self.total_admitted == 0:
            return 0.0
        return self.total_wait_time_ms / self.total_admitted


class QueueMetrics:
    """
    Thread-safe metrics collector for a request queue.

    The queue itself is driven from one event loop, but the collector may be
    read from other threads (e.g. a metrics exporter).
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._counters = QueueCounters()

    def record_submitted(self) -> None:
        with self._lock:
            self._counters.total_submitted += 1

    def record_admitted(self, wait_time_ms: float) -> None:
        """Record an admission and how long the task waited for it."""
        with self._lock:
            self._counters.total_admitted += 1
            self._counters.total_wait_time_ms += wait_time_ms

    def record_completed(self) -> None:
        with self._lock:
            self._counters.total_completed += 1

    def record_failed(self) -> None:
        with self._lock:
            self._counters.total_failed += 1

    def record_cleared(self, count: int) -> None:
        with self._lock:
            self._counters.total_cleared += count

    def record_dropped(self) -> None:
        """Record a pending task whose caller cancelled it before admission."""
        with self._lock:
            self._counters.total_dropped += 1

    def record_throttle(self) -> None:
        with self._lock:
            self._counters.throttle_waits += 1

    def snapshot(self) -> QueueCounters:
        """Return a copy of the current counters."""
        with self._lock:
            c = self._counters
            return QueueCounters(
                total_submitted=c.total_submitted,
                total_completed=c.total_completed,
                total_failed=c.total_failed,
                total_cleared=c.total_cleared,
                total_dropped=c.total_dropped,
                throttle_waits=c.throttle_waits,
                total_admitted=c.total_admitted,
                total_wait_time_ms=c.total_wait_time_ms,
            )

    def get_summary(self) -> dict[str, Any]:
        """Get metrics summary."""
        c = self.snapshot()
        return {
            "total_submitted": c.total_submitted,
            "total_admitted": c.total_admitted,
            "total_completed": c.total_completed,
            "total_failed": c.total_failed,
            "total_cleared": c.total_cleared,
            "total_dropped": c.total_dropped,
            "throttle_waits": c.throttle_waits,
            "avg_wait_time_ms": round(c.avg_wait_time_ms, 2),
        }

    def reset(self) -> None:
        """Reset all counters."""
        with self._lock:
            self._counters = QueueCounters()
