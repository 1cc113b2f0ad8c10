#!/usr/bin/env python3
"""
Basic usage examples for ratequeue.

Shows how a document service can route its calls to a rate-limited analysis
API through one shared queue.
"""

import asyncio
import random

from ratequeue import RequestQueue, QueueClearedError
from ratequeue.utils.retry import RetryConfig, resubmit_with_retry
from ratequeue.core.errors import RateLimitError


async def analyze_document(document_id: str) -> dict:
    """Stand-in for a call to a remote analysis API."""
    await asyncio.sleep(0.05)
    return {"document_id": document_id, "summary": f"Summary of {document_id}"}


async def throttled_analysis():
    """Submit a burst of analyses; only two run per second."""
    print("\n=== Throttled Analysis ===\n")

    queue = RequestQueue(concurrency=1, window_length_ms=1000, window_cap=2)

    futures = [
        queue.submit(lambda doc=f"doc-{i}": analyze_document(doc))
        for i in range(1, 6)
    ]
    print(f"Queued: {queue.get_stats().to_dict(legacy=True)}")

    for result in await asyncio.gather(*futures):
        print(f"Done: {result['document_id']}")


async def clearing_on_shutdown():
    """Fail pending work when the service shuts down."""
    print("\n=== Clearing on Shutdown ===\n")

    queue = RequestQueue(concurrency=1, window_length_ms=60_000, window_cap=1)
    first = queue.submit(lambda: analyze_document("doc-1"))
    second = queue.submit(lambda: analyze_document("doc-2"))

    print(f"Cleared {queue.clear()} pending task(s)")
    print(f"First: {await first}")
    try:
        await second
    except QueueClearedError as e:
        print(f"Second: {e}")
    await queue.join()


async def retry_on_rate_limit():
    """Resubmit work that the remote API rejected with a 429."""
    print("\n=== Retry on Rate Limit ===\n")

    queue = RequestQueue(concurrency=2, window_length_ms=1000, window_cap=5)

    async def flaky() -> str:
        if random.random() < 0.5:
            raise RateLimitError("429 Too Many Requests", retry_after=0.1)
        return "analysis complete"

    result = await resubmit_with_retry(
        queue, flaky, RetryConfig(max_retries=5, base_delay=0.1, jitter=False)
    )
    print(f"Result: {result}")
    print(f"Stats: {queue.get_stats().to_dict()}")


async def main():
    await throttled_analysis()
    await clearing_on_shutdown()
    await retry_on_rate_limit()


if __name__ == "__main__":
    asyncio.run(main())
