"""
Rate-limited request queue.

Admits deferred async work in FIFO order, bounded both by a concurrency limit
and by a per-window admission cap.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ratequeue.core.errors import QueueClearedError, QueueConfigurationError
from ratequeue.utils.metrics import QueueMetrics

logger = structlog.get_logger()

T = TypeVar("T")


class QueueConfig(BaseModel):
    """Limits for a request queue. Immutable once built."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    concurrency: int = Field(default=1, gt=0, strict=True, description="Max parallel executions")
    window_length_ms: int = Field(
        default=60_000, gt=0, strict=True, description="Rate-limit window length"
    )
    window_cap: int = Field(default=10, gt=0, strict=True, description="Max admissions per window")

    @property
    def window_seconds(self) -> float:
        return self.window_length_ms / 1000.0

    @classmethod
    def build(cls, config: QueueConfig | None = None, **overrides: Any) -> QueueConfig:
        """
        Build a config, merging non-None overrides over an optional base.

        Raises:
            QueueConfigurationError: If any limit is invalid
        """
        base = config.model_dump() if config is not None else {}
        base.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(**base)
        except ValidationError as e:
            raise QueueConfigurationError(f"Invalid queue configuration: {e}") from e


@dataclass
class QueuedTask(Generic[T]):
    """A unit of work waiting for admission."""

    task_id: str
    work: Callable[[], Awaitable[T]]
    future: asyncio.Future
    enqueued_at: float


@dataclass
class QueueStats:
    """Point-in-time queue statistics."""

    queue_length: int = 0
    processing: int = 0
    requests_in_interval: int = 0
    interval_cap: int = 0
    remaining_in_interval: int = 0
    total_submitted: int = 0
    total_completed: int = 0
    total_failed: int = 0
    total_cleared: int = 0
    throttle_waits: int = 0
    avg_wait_time_ms: float = 0.0

    def to_dict(self, legacy: bool = False) -> dict[str, Any]:
        """
        Serialize the snapshot.

        Args:
            legacy: Emit only the window snapshot, keyed with the camelCase
                names the HTTP layer reports.
        """
        if legacy:
            return {
                "queueLength": self.queue_length,
                "processing": self.processing,
                "requestsInInterval": self.requests_in_interval,
                "intervalCap": self.interval_cap,
                "remainingInInterval": self.remaining_in_interval,
            }
        return {
            "queue_length": self.queue_length,
            "processing": self.processing,
            "requests_in_interval": self.requests_in_interval,
            "interval_cap": self.interval_cap,
            "remaining_in_interval": self.remaining_in_interval,
            "total_submitted": self.total_submitted,
            "total_completed": self.total_completed,
            "total_failed": self.total_failed,
            "total_cleared": self.total_cleared,
            "throttle_waits": self.throttle_waits,
            "avg_wait_time_ms": round(self.avg_wait_time_ms, 2),
        }


class RequestQueue:
    """
    FIFO queue that throttles admissions of async work.

    At most ``concurrency`` tasks run at once and at most ``window_cap`` tasks
    are admitted per window. The window is reset wholesale once
    ``window_length_ms`` has elapsed since it started, so a full burst just
    before a reset may be followed immediately by another full burst.

    Example:
        queue = RequestQueue(concurrency=2, window_length_ms=60_000, window_cap=10)

        result = await queue.submit(lambda: client.analyze(document_id))

        # On shutdown, fail everything that has not started yet
        queue.clear()
        await queue.join()
    """

    def __init__(
        self,
        config: QueueConfig | None = None,
        *,
        name: str = "default",
        concurrency: int | None = None,
        window_length_ms: int | None = None,
        window_cap: int | None = None,
    ):
        self.config = QueueConfig.build(
            config,
            concurrency=concurrency,
            window_length_ms=window_length_ms,
            window_cap=window_cap,
        )
        self.name = name

        self._waiting: deque[QueuedTask[Any]] = deque()
        self._in_flight = 0
        self._window_start = time.monotonic()
        self._admitted_in_window = 0
        self._task_counter = 0
        self._recheck: asyncio.TimerHandle | None = None
        self._recheck_window: float | None = None
        self._running: set[asyncio.Task] = set()
        self._idle = asyncio.Event()
        self._idle.set()
        self._metrics = QueueMetrics()

    def __len__(self) -> int:
        return len(self._waiting)

    def __repr__(self) -> str:
        return (
            f"RequestQueue(name={self.name!r}, waiting={len(self._waiting)}, "
            f"in_flight={self._in_flight}, concurrency={self.config.concurrency}, "
            f"window_cap={self.config.window_cap})"
        )

    @property
    def metrics(self) -> QueueMetrics:
        return self._metrics

    def submit(self, work: Callable[[], Awaitable[T]]) -> asyncio.Future[T]:
        """
        Queue work for execution.

        Must be called from a running event loop. Returns immediately.

        Args:
            work: Zero-argument callable returning an awaitable

        Returns:
            Future resolving with the work's result, failing with the work's
            own exception, or failing with QueueClearedError if the queue is
            cleared before the work is admitted
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[T] = loop.create_future()

        self._task_counter += 1
        task = QueuedTask(
            task_id=f"req-{self._task_counter}",
            work=work,
            future=future,
            enqueued_at=time.monotonic(),
        )
        self._waiting.append(task)
        self._idle.clear()
        self._metrics.record_submitted()

        logger.debug(
            "Task queued",
            queue=self.name,
            task_id=task.task_id,
            queue_length=len(self._waiting),
        )

        self._pump()
        return future

    async def run(self, work: Callable[[], Awaitable[T]]) -> T:
        """Submit work and wait for its outcome."""
        return await self.submit(work)

    def _pump(self) -> None:
        """Admit as many head-of-line tasks as current limits allow."""
        window = self.config.window_seconds

        while self._in_flight < self.config.concurrency:
            now = time.monotonic()
            elapsed = now - self._window_start
            if elapsed >= window:
                self._admitted_in_window = 0
                self._window_start = now
                elapsed = 0.0

            if not self._waiting:
                self._update_idle()
                return

            if self._admitted_in_window >= self.config.window_cap:
                self._schedule_recheck(window - elapsed)
                return

            task = self._waiting.popleft()
            if task.future.cancelled():
                self._metrics.record_dropped()
                logger.debug("Dropped cancelled task", queue=self.name, task_id=task.task_id)
                continue

            self._in_flight += 1
            self._admitted_in_window += 1

            wait_time_ms = (now - task.enqueued_at) * 1000
            self._metrics.record_admitted(wait_time_ms)
            logger.debug(
                "Task admitted",
                queue=self.name,
                task_id=task.task_id,
                wait_time_ms=round(wait_time_ms, 2),
                in_flight=self._in_flight,
                requests_in_interval=self._admitted_in_window,
            )

            runner = asyncio.get_running_loop().create_task(self._execute(task))
            self._running.add(runner)
            runner.add_done_callback(self._running.discard)

    def _schedule_recheck(self, delay: float) -> None:
        if self._recheck is not None:
            return

        if self._recheck_window != self._window_start:
            self._metrics.record_throttle()
        logger.debug(
            "Window cap reached",
            queue=self.name,
            window_cap=self.config.window_cap,
            retry_in_ms=round(delay * 1000, 2),
            queue_length=len(self._waiting),
        )
        loop = asyncio.get_running_loop()
        self._recheck = loop.call_later(max(delay, 0.0), self._on_recheck)

    def _on_recheck(self) -> None:
        # Timers may fire slightly early; a re-arm here is the same wait.
        self._recheck = None
        self._recheck_window = self._window_start
        try:
            self._pump()
        finally:
            self._recheck_window = None

    async def _execute(self, task: QueuedTask[Any]) -> None:
        try:
            result = await task.work()
        except asyncio.CancelledError:
            task.future.cancel()
            raise
        except Exception as e:
            self._metrics.record_failed()
            logger.debug(
                "Task failed",
                queue=self.name,
                task_id=task.task_id,
                error_type=type(e).__name__,
            )
            if not task.future.done():
                task.future.set_exception(e)
        else:
            self._metrics.record_completed()
            logger.debug("Task completed", queue=self.name, task_id=task.task_id)
            if not task.future.done():
                task.future.set_result(result)
        finally:
            self._in_flight -= 1
            asyncio.get_running_loop().call_soon(self._pump)

    def _update_idle(self) -> None:
        if not self._waiting and self._in_flight == 0:
            self._idle.set()

    def get_stats(self) -> QueueStats:
        """Get a snapshot of queue statistics."""
        counters = self._metrics.snapshot()
        return QueueStats(
            queue_length=len(self._waiting),
            processing=self._in_flight,
            requests_in_interval=self._admitted_in_window,
            interval_cap=self.config.window_cap,
            remaining_in_interval=self.config.window_cap - self._admitted_in_window,
            total_submitted=counters.total_submitted,
            total_completed=counters.total_completed,
            total_failed=counters.total_failed,
            total_cleared=counters.total_cleared,
            throttle_waits=counters.throttle_waits,
            avg_wait_time_ms=counters.avg_wait_time_ms,
        )

    def clear(self) -> int:
        """
        Reject every pending task with QueueClearedError.

        Tasks already running are left to finish normally.

        Returns:
            Number of pending tasks removed
        """
        if self._recheck is not None:
            self._recheck.cancel()
            self._recheck = None

        if not self._waiting:
            return 0

        pending = list(self._waiting)
        self._waiting.clear()

        rejected = 0
        for task in pending:
            if not task.future.done():
                task.future.set_exception(QueueClearedError(task_id=task.task_id))
                rejected += 1

        self._metrics.record_cleared(rejected)
        self._update_idle()
        logger.info("Queue cleared", queue=self.name, cleared=rejected, removed=len(pending))
        return len(pending)

    def size(self) -> int:
        """Number of tasks waiting for admission."""
        return len(self._waiting)

    async def join(self) -> None:
        """Wait until no task is waiting or running."""
        await self._idle.wait()
