"""
# View Counter

Best-effort, non-blocking view counting for `GET /api/posts/{slug}`.

`record()` schedules the `$inc` as a background task and returns immediately, so the read path
never waits on the write. Semantics are at-most-once: a failed increment is logged and dropped,
and increments still pending at shutdown are awaited by `drain()` for a bounded time.
"""

import asyncio
from typing import Any, Awaitable, Callable, Set

from inkwell.managers.logging_manager import get_logger

logger = get_logger(prefix="[View Counter]")

Incrementer = Callable[[Any], Awaitable[Any]]


class ViewCounter:
    """Tracks in-flight view increments so they are not garbage collected mid-flight."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def record(self, post_id: Any, increment: Incrementer) -> None:
        """Schedule `increment(post_id)` without awaiting it."""
        task = asyncio.create_task(self._run(post_id, increment))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, post_id: Any, increment: Incrementer) -> None:
        try:
            await increment(post_id)
        except Exception as e:
            logger.warning("Dropped view increment for post %s: %s", post_id, e)

    async def drain(self, timeout: float = 5.0) -> None:
        """Wait for pending increments, giving up after `timeout` seconds."""
        if not self._tasks:
            return
        logger.info("Waiting for %d pending view increments", len(self._tasks))
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning("Cancelled %d view increments still pending at shutdown", len(pending))


view_counter = ViewCounter()
