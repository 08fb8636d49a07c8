"""Fixed-size batch scheduling on top of the concurrency limiter."""

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from .limiter import ConcurrencyLimiter

logger = logging.getLogger(__name__)

ItemT = TypeVar("ItemT")


@dataclass
class BatchResult(Generic[ItemT]):
    """Terminal outcome of one scheduled item: a value or an error."""

    item: ItemT
    index: int
    value: Any = None
    error: BaseException | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class BatchSummary(Generic[ItemT]):
    """Every item's outcome, split into successes and errors."""

    results: list[BatchResult[ItemT]] = field(default_factory=list)

    @property
    def successes(self) -> list[BatchResult[ItemT]]:
        return [r for r in self.results if r.succeeded]

    @property
    def errors(self) -> list[BatchResult[ItemT]]:
        return [r for r in self.results if not r.succeeded]

    @property
    def success_count(self) -> int:
        return len(self.successes)

    @property
    def error_count(self) -> int:
        return len(self.errors)


@dataclass
class BatchProgressEvent:
    batch_number: int
    total_batches: int
    success_count: int
    error_count: int


class BatchScheduler:
    """Processes items in batches through a shared ConcurrencyLimiter.

    Items within a batch start staggered by ``index * item_delay`` and are
    joined settle-all, so one failure never cancels its siblings. Batches
    are separated by ``batch_delay`` to stay clear of abuse detection.
    """

    def __init__(
        self,
        limiter: ConcurrencyLimiter,
        batch_size: int = 5,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.limiter = limiter
        self.batch_size = batch_size
        self._sleep = sleep

    async def process(
        self,
        items: Sequence[ItemT],
        fn: Callable[[ItemT, int], Awaitable[Any]],
        *,
        item_delay: float = 0.2,
        batch_delay: float = 2.0,
        on_progress: Callable[[BatchResult[ItemT]], None] | None = None,
        on_batch_complete: Callable[[BatchProgressEvent], None] | None = None,
        abort_on: tuple[type[BaseException], ...] = (),
    ) -> BatchSummary[ItemT]:
        """Run ``fn(item, index)`` for every item.

        Args:
            items: Ordered work items
            fn: Coroutine function producing a value per item
            item_delay: Stagger between item starts within a batch, seconds
            batch_delay: Pause between batches, seconds
            on_progress: Called once per settled item
            on_batch_complete: Called after each batch settles
            abort_on: Error types that stop scheduling after their batch settles

        Returns:
            Summary with one result per processed item

        Raises:
            BaseException: The first error of an ``abort_on`` type
        """
        summary: BatchSummary[ItemT] = BatchSummary()
        total_batches = math.ceil(len(items) / self.batch_size)
        logger.info(
            "Processing %d items in %d batches with %d concurrent workers",
            len(items),
            total_batches,
            self.limiter.limit,
        )

        for start in range(0, len(items), self.batch_size):
            batch = items[start : start + self.batch_size]
            batch_number = start // self.batch_size + 1
            logger.info(
                "Batch %d/%d: items %d-%d",
                batch_number,
                total_batches,
                start + 1,
                start + len(batch),
            )

            futures = [
                self.limiter.submit(self._staggered(fn, item, start + offset, offset * item_delay))
                for offset, item in enumerate(batch)
            ]
            settled = await asyncio.gather(*futures, return_exceptions=True)

            batch_results = []
            for offset, (item, outcome) in enumerate(zip(batch, settled)):
                if isinstance(outcome, BaseException):
                    result = BatchResult(item=item, index=start + offset, error=outcome)
                    logger.warning("Item %d failed: %s", start + offset + 1, outcome)
                else:
                    result = BatchResult(item=item, index=start + offset, value=outcome)
                batch_results.append(result)
                summary.results.append(result)
                if on_progress is not None:
                    on_progress(result)

            if on_batch_complete is not None:
                on_batch_complete(
                    BatchProgressEvent(
                        batch_number=batch_number,
                        total_batches=total_batches,
                        success_count=summary.success_count,
                        error_count=summary.error_count,
                    )
                )
            logger.info(
                "Batch %d complete: %d successes, %d errors",
                batch_number,
                summary.success_count,
                summary.error_count,
            )

            for result in batch_results:
                if result.error is not None and isinstance(result.error, abort_on):
                    await self.limiter.wait_for_all()
                    raise result.error

            if start + self.batch_size < len(items):
                logger.debug("Waiting %.1fs before next batch", batch_delay)
                await self._sleep(batch_delay)

        await self.limiter.wait_for_all()
        logger.info(
            "All batches completed: %d successes, %d errors",
            summary.success_count,
            summary.error_count,
        )
        return summary

    def _staggered(
        self,
        fn: Callable[[ItemT, int], Awaitable[Any]],
        item: ItemT,
        index: int,
        delay: float,
    ) -> Callable[[], Awaitable[Any]]:
        async def run() -> Any:
            if delay > 0:
                await self._sleep(delay)
            return await fn(item, index)

        return run
