"""
Retry utilities with exponential backoff.

The queue never retries failed work on its own; callers that want retries wrap
their work, or resubmit it, with these helpers.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from functools import wraps
from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeVar

import structlog

from ratequeue.core.errors import QueueClearedError, RateLimitError, is_rate_limit_error

if TYPE_CHECKING:
    from ratequeue.queue.request_queue import RequestQueue

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = True
    retryable_exceptions: tuple[type[Exception], ...] = (
        RateLimitError,
        ConnectionError,
        TimeoutError,
    )
    detect_rate_limit_messages: bool = True


def _is_retryable(error: Exception, config: RetryConfig) -> bool:
    if isinstance(error, config.retryable_exceptions):
        return True
    return config.detect_rate_limit_messages and is_rate_limit_error(error)


def calculate_delay(
    attempt: int,
    config: RetryConfig,
    retry_after: float | None = None,
) -> float:
    """
    Calculate delay before next retry attempt.

    Args:
        attempt: Current attempt number (0-indexed)
        config: Retry configuration
        retry_after: Optional server-specified delay

    Returns:
        Delay in seconds
    """
    if retry_after:
        delay = retry_after
    else:
        delay = config.base_delay * (config.exponential_base ** attempt)

    delay = min(delay, config.max_delay)

    if config.jitter:
        delay = delay * (0.5 + random.random())

    return delay


def with_retry(
    config: RetryConfig | None = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Decorator for adding retry logic to async functions.

    QueueClearedError is never retried: the work was deliberately abandoned.

    Args:
        config: Retry configuration (uses defaults if not provided)

    Returns:
        Decorated function with retry logic
    """
    config = config or RetryConfig()

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            for attempt in range(config.max_retries + 1):
                try:
                    return await func(*args, **kwargs)

                except QueueClearedError:
                    raise

                except Exception as e:
                    if not _is_retryable(e, config):
                        raise

                    if attempt == config.max_retries:
                        logger.error(
                            "Max retries exceeded",
                            function=getattr(func, "__name__", repr(func)),
                            attempts=attempt + 1,
                            error=str(e),
                        )
                        raise

                    retry_after = None
                    if isinstance(e, RateLimitError):
                        retry_after = e.retry_after

                    delay = calculate_delay(attempt, config, retry_after)

                    logger.warning(
                        "Retrying after error",
                        function=getattr(func, "__name__", repr(func)),
                        attempt=attempt + 1,
                        max_retries=config.max_retries,
                        delay=delay,
                        error=str(e),
                    )

                    await asyncio.sleep(delay)

            raise RuntimeError("Unexpected retry loop exit")

        return wrapper

    return decorator


async def retry_async(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    config: RetryConfig | None = None,
    **kwargs: Any,
) -> T:
    """
    Execute an async function with retry logic.

    Args:
        func: Async function to execute
        *args: Positional arguments
        config: Retry configuration
        **kwargs: Keyword arguments

    Returns:
        Function result

    Raises:
        Last exception if all retries fail
    """
    config = config or RetryConfig()
    decorated = with_retry(config)(func)
    return await decorated(*args, **kwargs)


async def resubmit_with_retry(
    queue: RequestQueue,
    work: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
) -> T:
    """
    Submit work through a queue, resubmitting it on retryable failures.

    Each retry goes to the tail of the queue and consumes a fresh admission,
    so retries stay within the queue's rate limit.
    """

    async def attempt() -> T:
        return await queue.submit(work)

    return await retry_async(attempt, config=config)
