"""Counting admission gate for concurrent coroutines."""

import asyncio
import logging
import uuid
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class _QueuedTask:
    task_id: str
    fn: Callable[[], Awaitable[Any]]
    future: asyncio.Future


class ConcurrencyLimiter:
    """Runs submitted coroutines with at most ``limit`` in flight.

    Tasks are admitted in FIFO order. All bookkeeping happens on the event
    loop thread, so the running count and queue need no further locking.
    """

    def __init__(self, limit: int = 3):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self.running = 0
        self._queue: deque[_QueuedTask] = deque()
        self._tasks: set[asyncio.Task] = set()
        self._idle = asyncio.Event()
        self._idle.set()

    def submit(self, fn: Callable[[], Awaitable[Any]]) -> asyncio.Future:
        """Queue ``fn`` and return a future for its result."""
        future = asyncio.get_running_loop().create_future()
        self._queue.append(_QueuedTask(uuid.uuid4().hex[:9], fn, future))
        self._idle.clear()
        self._admit()
        return future

    def status(self) -> dict[str, int]:
        return {"running": self.running, "queued": len(self._queue), "limit": self.limit}

    async def wait_for_all(self) -> None:
        """Return once nothing is running and nothing is queued."""
        await self._idle.wait()

    def _admit(self) -> None:
        while self.running < self.limit and self._queue:
            queued = self._queue.popleft()
            self.running += 1
            logger.debug(
                "Starting task %s (%d/%d running, %d queued)",
                queued.task_id,
                self.running,
                self.limit,
                len(self._queue),
            )
            task = asyncio.create_task(self._run(queued))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run(self, queued: _QueuedTask) -> None:
        try:
            result = await queued.fn()
        except asyncio.CancelledError:
            queued.future.cancel()
            raise
        except Exception as e:
            logger.debug("Task %s failed: %s", queued.task_id, e)
            if not queued.future.done():
                queued.future.set_exception(e)
        else:
            if not queued.future.done():
                queued.future.set_result(result)
        finally:
            self.running -= 1
            logger.debug(
                "Task %s finished (%d/%d running, %d queued)",
                queued.task_id,
                self.running,
                self.limit,
                len(self._queue),
            )
            self._admit()
            if self.running == 0 and not self._queue:
                self._idle.set()
