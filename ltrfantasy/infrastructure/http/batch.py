"""Batched fan-out over the fetch client and the store.

Every item of a batch resolves to its own result. One item failing never
cancels or fails its siblings, and the batch call itself does not raise.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence, TypeVar

from ltrfantasy.domain.interfaces.store import KeyValueStore
from ltrfantasy.domain.models.cache import CacheOperation, FetchResult
from ltrfantasy.domain.models.common import Url
from ltrfantasy.infrastructure.http.fetch_client import CachedFetchClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> Iterable[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class BatchCoordinator:
    """Runs fetches and cache writes concurrently in delay-spaced batches."""

    def __init__(
        self,
        fetch_client: CachedFetchClient,
        store: KeyValueStore,
        batch_size: int = 5,
        batch_delay: float = 0.25,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self.fetch_client = fetch_client
        self.store = store
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self._sleep = sleep

    async def run_in_batches(
        self,
        items: Sequence[T],
        worker: Callable[[T], Awaitable[Any]],
        batch_size: int,
        batch_delay: Optional[float] = None,
        on_batch_done: Optional[Callable[[int, List[Any]], Awaitable[None]]] = None,
    ) -> List[Any]:
        """Runs ``worker`` over ``items``, one concurrent batch at a time.

        Args:
            items: Work items.
            worker: Coroutine function applied to each item.
            batch_size: Items per concurrent batch.
            batch_delay: Pause between batches (defaults to ``batch_delay``).
            on_batch_done: Awaited with the number of items processed so far
                and the outcomes of the batch that just finished.

        Returns:
            One outcome per item, in order. A failed item yields its exception.
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        delay = self.batch_delay if batch_delay is None else batch_delay

        outcomes: List[Any] = []
        batches = list(chunked(list(items), batch_size))
        for index, batch in enumerate(batches):
            batch_outcomes = await asyncio.gather(*(worker(item) for item in batch), return_exceptions=True)
            for outcome in batch_outcomes:
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
            outcomes.extend(batch_outcomes)
            if on_batch_done is not None:
                await on_batch_done(len(outcomes), list(batch_outcomes))
            if index < len(batches) - 1:
                await self._sleep(delay)
        return outcomes

    async def batch_fetch(self, urls: Sequence[Url], batch_size: Optional[int] = None) -> List[FetchResult]:
        """Fetches every URL and returns one FetchResult per URL, in order.

        Args:
            urls: URLs to fetch.
            batch_size: When given, fetch at most this many at once with
                ``batch_delay`` between batches. All at once otherwise.
        """
        urls = list(urls)
        size = batch_size if batch_size is not None else max(len(urls), 1)
        outcomes = await self.run_in_batches(urls, self.fetch_client.fetch, size)
        results = [self._to_result(url, outcome) for url, outcome in zip(urls, outcomes)]

        failed = sum(1 for r in results if not r.success)
        if failed:
            logger.warning(f"Batch fetch finished: {len(results) - failed} succeeded, {failed} failed")
        else:
            logger.debug(f"Batch fetch finished: {len(results)} succeeded")
        return results

    @staticmethod
    def _to_result(url: Url, outcome: Any) -> FetchResult:
        if isinstance(outcome, BaseException):
            logger.error(f"API call failed for {url}: {outcome}")
            return FetchResult(url=url, success=False, error=outcome)
        return FetchResult(url=url, success=True, data=outcome)

    async def batch_cache_operation(self, operations: Sequence[CacheOperation], batch_size: Optional[int] = None) -> List[bool]:
        """Writes cache entries in concurrent batches.

        Returns:
            One success flag per operation, in order.
        """
        operations = list(operations)
        size = batch_size if batch_size is not None else self.batch_size

        async def write(op: CacheOperation) -> bool:
            return await self.store.set(op.key, op.data, op.ttl_seconds, partition=op.partition)

        outcomes = await self.run_in_batches(operations, write, size)
        results: List[bool] = []
        for op, outcome in zip(operations, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Batch cache write failed for key {op.key}: {outcome}")
                results.append(False)
            else:
                results.append(bool(outcome))
        return results
