"""Cursor-driven page walker shared by the repository and issue streams."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar

from ..github_client.models import Page
from ..storage.checkpoint import CursorProgress

logger = logging.getLogger(__name__)

ItemT = TypeVar("ItemT")


class PaginatorState(str, Enum):
    FETCHING = "fetching"
    DONE = "done"


class Paginator(Generic[ItemT]):
    """Walks one paged stream from a saved position until it is exhausted.

    Each page is persisted before the cursor advances, and the checkpoint
    callback only ever sees positions whose items are already stored. The
    ``progress`` record is updated in place so the caller's checkpoint
    reflects it.
    """

    def __init__(
        self,
        fetch_page: Callable[[str | None], Awaitable[Page[ItemT]]],
        persist: Callable[[Sequence[ItemT]], Awaitable[Any]],
        progress: CursorProgress,
        on_checkpoint: Callable[[int], None],
        *,
        since: datetime | None = None,
        activity_time: Callable[[ItemT], datetime | None] | None = None,
        page_size: int = 100,
        max_pages: int | None = None,
        checkpoint_every: int = 1,
        stop_on_sparse_page: bool = False,
        page_delay: float = 0.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        label: str = "items",
    ):
        """Initialize the paginator.

        Args:
            fetch_page: Returns the page after the given cursor
            persist: Idempotently stores a page's kept items
            progress: Position to resume from; mutated as pages complete
            on_checkpoint: Called with the page number when progress should be saved
            since: Drop items whose activity time is earlier than this
            activity_time: Extracts the time compared against ``since``
            page_size: Requested page size, used for the sparse-page check
            max_pages: Pages fetched per run before stopping
            checkpoint_every: Checkpoint cadence in pages
            stop_on_sparse_page: With ``since``, stop once a page loses items to the filter
            page_delay: Seconds to wait between pages
            sleep: Awaitable sleep, injectable for tests
            label: Stream name for log messages
        """
        if since is not None and activity_time is None:
            raise ValueError("activity_time is required when since is set")
        self.fetch_page = fetch_page
        self.persist = persist
        self.progress = progress
        self.on_checkpoint = on_checkpoint
        self.since = since
        self.activity_time = activity_time
        self.page_size = page_size
        self.max_pages = max_pages
        self.checkpoint_every = max(1, checkpoint_every)
        self.stop_on_sparse_page = stop_on_sparse_page
        self.page_delay = page_delay
        self._sleep = sleep
        self.label = label
        self.pages_fetched = 0
        self.state = PaginatorState.DONE if progress.complete else PaginatorState.FETCHING

    async def run(self) -> int:
        """Fetch pages until DONE and return the accumulated item count."""
        if self.state is PaginatorState.DONE:
            logger.debug("%s already complete (%d)", self.label, self.progress.count)
            return self.progress.count

        if self.progress.end_cursor:
            logger.info(
                "Resuming %s from cursor %s (%d already fetched)",
                self.label,
                self.progress.end_cursor,
                self.progress.count,
            )

        while self.state is PaginatorState.FETCHING:
            await self.step()
            if self.state is PaginatorState.FETCHING and self.page_delay > 0:
                await self._sleep(self.page_delay)

        return self.progress.count

    async def step(self) -> None:
        """Fetch, filter, persist, and advance by exactly one page."""
        page = await self.fetch_page(self.progress.end_cursor)
        self.pages_fetched += 1

        items = self._filter(page.items)
        if len(items) != len(page.items):
            logger.debug(
                "Filtered %d to %d %s since %s",
                len(page.items),
                len(items),
                self.label,
                self.since,
            )

        if items:
            await self.persist(items)

        self.progress.count += len(items)
        if page.end_cursor:
            self.progress.end_cursor = page.end_cursor

        done = not page.items or not page.has_more or not page.end_cursor
        if self.since is not None and self.stop_on_sparse_page and len(items) < self.page_size:
            done = True
        if not done and self.max_pages is not None and self.pages_fetched >= self.max_pages:
            logger.info("Max pages (%d) reached for %s", self.max_pages, self.label)
            self.state = PaginatorState.DONE
        elif done:
            self.progress.complete = True
            self.state = PaginatorState.DONE

        logger.info(
            "Fetched %d %s on page %d (%d total)",
            len(items),
            self.label,
            self.pages_fetched,
            self.progress.count,
        )

        if (
            self.state is PaginatorState.DONE
            or self.pages_fetched % self.checkpoint_every == 0
        ):
            self.on_checkpoint(self.pages_fetched)

    def _filter(self, items: Sequence[ItemT]) -> list[ItemT]:
        if self.since is None or self.activity_time is None:
            return list(items)
        kept = []
        for item in items:
            when = self.activity_time(item)
            if when is not None and when >= self.since:
                kept.append(item)
        return kept
