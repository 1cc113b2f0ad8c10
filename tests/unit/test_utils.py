"""Tests for utility modules."""

import asyncio
import logging

import pytest
import structlog

from ratequeue.core import config as core_config
from ratequeue.core.errors import (
    QueueClearedError,
    RateLimitError,
    is_rate_limit_error,
)
from ratequeue.queue.request_queue import RequestQueue
from ratequeue.utils.logging import setup_logging
from ratequeue.utils.metrics import QueueMetrics
from ratequeue.utils.retry import (
    RetryConfig,
    calculate_delay,
    resubmit_with_retry,
    retry_async,
    with_retry,
)


class TestQueueMetrics:
    """Tests for QueueMetrics."""

    def test_record_and_summarize(self):
        metrics = QueueMetrics()
        metrics.record_submitted()
        metrics.record_submitted()
        metrics.record_admitted(10.0)
        metrics.record_admitted(30.0)
        metrics.record_completed()
        metrics.record_failed()

        summary = metrics.get_summary()
        assert summary["total_submitted"] == 2
        assert summary["total_admitted"] == 2
        assert summary["total_completed"] == 1
        assert summary["total_failed"] == 1
        assert summary["avg_wait_time_ms"] == 20.0

    def test_cleared_and_throttle(self):
        metrics = QueueMetrics()
        metrics.record_cleared(3)
        metrics.record_throttle()

        snapshot = metrics.snapshot()
        assert snapshot.total_cleared == 3
        assert snapshot.throttle_waits == 1
        assert snapshot.avg_wait_time_ms == 0.0

    def test_snapshot_is_a_copy(self):
        metrics = QueueMetrics()
        snapshot = metrics.snapshot()
        metrics.record_submitted()
        assert snapshot.total_submitted == 0

    def test_reset(self):
        metrics = QueueMetrics()
        metrics.record_submitted()
        metrics.reset()
        assert metrics.get_summary()["total_submitted"] == 0


class TestRateLimitDetection:
    """Tests for is_rate_limit_error."""

    def test_rate_limit_error(self):
        assert is_rate_limit_error(RateLimitError("slow down"))

    def test_status_code_attribute(self):
        error = Exception("rejected")
        error.status_code = 429
        assert is_rate_limit_error(error)

    @pytest.mark.parametrize(
        "message",
        ["HTTP 429 Too Many Requests", "Rate limit exceeded", "Quota exhausted"],
    )
    def test_message_markers(self, message):
        assert is_rate_limit_error(Exception(message))

    def test_unrelated_error(self):
        assert not is_rate_limit_error(ValueError("bad input"))

    @pytest.mark.parametrize(
        "message",
        ["document 14290 missing", "page 4291 not found", "id 1429 rejected"],
    )
    def test_429_inside_other_numbers_ignored(self, message):
        assert not is_rate_limit_error(Exception(message))


class TestCalculateDelay:
    """Tests for delay calculation."""

    def test_exponential_backoff(self):
        config = RetryConfig(base_delay=1.0, exponential_base=2.0, jitter=False)

        assert calculate_delay(0, config) == 1.0
        assert calculate_delay(1, config) == 2.0
        assert calculate_delay(2, config) == 4.0

    def test_max_delay_cap(self):
        config = RetryConfig(base_delay=10.0, max_delay=30.0, jitter=False)
        assert calculate_delay(5, config) == 30.0

    def test_retry_after_override(self):
        config = RetryConfig(base_delay=1.0, jitter=False)
        assert calculate_delay(0, config, retry_after=60.0) == 60.0

    def test_jitter_adds_variance(self):
        config = RetryConfig(base_delay=1.0, jitter=True)

        delays = [calculate_delay(1, config) for _ in range(10)]
        assert len(set(delays)) > 1


class TestWithRetry:
    """Tests for with_retry decorator."""

    @pytest.mark.asyncio
    async def test_success_on_first_try(self):
        call_count = 0

        @with_retry(RetryConfig(max_retries=3))
        async def successful_func():
            nonlocal call_count
            call_count += 1
            return "success"

        assert await successful_func() == "success"
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_retry_on_rate_limit(self):
        call_count = 0

        @with_retry(RetryConfig(max_retries=3, base_delay=0.01))
        async def flaky_func():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise RateLimitError("Rate limited")
            return "success"

        assert await flaky_func() == "success"
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_retry_on_rate_limit_message(self):
        call_count = 0

        @with_retry(RetryConfig(max_retries=2, base_delay=0.01))
        async def flaky_func():
            nonlocal call_count
            call_count += 1
            if call_count < 2:
                raise Exception("upstream returned 429")
            return "success"

        assert await flaky_func() == "success"
        assert call_count == 2

    @pytest.mark.asyncio
    async def test_max_retries_exceeded(self):
        @with_retry(RetryConfig(max_retries=2, base_delay=0.01))
        async def always_fails():
            raise RateLimitError("Rate limited")

        with pytest.raises(RateLimitError):
            await always_fails()

    @pytest.mark.asyncio
    async def test_non_retryable_exception(self):
        call_count = 0

        @with_retry(RetryConfig(max_retries=3))
        async def raises_value_error():
            nonlocal call_count
            call_count += 1
            raise ValueError("Not retryable")

        with pytest.raises(ValueError):
            await raises_value_error()
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_number_containing_429_not_retried(self):
        call_count = 0

        @with_retry(RetryConfig(max_retries=3, base_delay=0.01))
        async def missing_document():
            nonlocal call_count
            call_count += 1
            raise LookupError("document 14290 missing")

        with pytest.raises(LookupError):
            await missing_document()
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_queue_cleared_never_retried(self):
        call_count = 0
        config = RetryConfig(
            max_retries=3,
            retryable_exceptions=(QueueClearedError,),
        )

        @with_retry(config)
        async def cleared():
            nonlocal call_count
            call_count += 1
            raise QueueClearedError()

        with pytest.raises(QueueClearedError):
            await cleared()
        assert call_count == 1


class TestRetryAsync:
    """Tests for retry_async and resubmit_with_retry."""

    @pytest.mark.asyncio
    async def test_retry_async_success(self):
        async def my_func(x: int) -> int:
            return x * 2

        assert await retry_async(my_func, 5) == 10

    @pytest.mark.asyncio
    async def test_resubmit_through_queue(self):
        queue = RequestQueue(concurrency=1, window_cap=100)
        call_count = 0

        async def flaky():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise RateLimitError("429", retry_after=0.01)
            return "analysis"

        result = await resubmit_with_retry(
            queue, flaky, RetryConfig(max_retries=3, jitter=False)
        )

        assert result == "analysis"
        assert call_count == 3
        stats = queue.get_stats()
        assert stats.total_submitted == 3
        assert stats.total_failed == 2
        assert stats.total_completed == 1

    @pytest.mark.asyncio
    async def test_resubmit_stops_on_clear(self):
        queue = RequestQueue(concurrency=1, window_cap=100)
        release = asyncio.Event()

        async def blocker():
            await release.wait()

        async def work():
            return "never"

        blocked = queue.submit(blocker)
        attempt = asyncio.ensure_future(
            resubmit_with_retry(queue, work, RetryConfig(base_delay=0.01))
        )
        await asyncio.sleep(0)
        assert queue.size() == 1

        queue.clear()
        with pytest.raises(QueueClearedError):
            await attempt

        release.set()
        await blocked
        assert queue.get_stats().total_submitted == 2


class TestSetupLogging:
    """Tests for setup_logging."""

    @pytest.fixture
    def captured(self, monkeypatch):
        captured = {}
        monkeypatch.setattr(structlog, "configure", lambda **kwargs: captured.update(kwargs))
        return captured

    def test_json_renderer(self, captured):
        setup_logging(level="debug", json_format=True)
        assert isinstance(captured["processors"][-1], structlog.processors.JSONRenderer)

    def test_console_renderer(self, captured):
        setup_logging(level="INFO", json_format=False)
        assert isinstance(captured["processors"][-1], structlog.dev.ConsoleRenderer)

    def test_debug_setting_enables_debug_level(self, captured, monkeypatch):
        levels = []
        monkeypatch.setattr(core_config, "get_settings", lambda: core_config.Settings(debug=True))
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: levels.append(kwargs["level"]))

        setup_logging(json_format=True)
        assert levels == [logging.DEBUG]

    def test_explicit_level_wins_over_debug(self, captured, monkeypatch):
        levels = []
        monkeypatch.setattr(core_config, "get_settings", lambda: core_config.Settings(debug=True))
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: levels.append(kwargs["level"]))

        setup_logging(level="WARNING", json_format=True)
        assert levels == [logging.WARNING]
