"""
Notification channel for the dynamic update loop.

The config provider side pushes one notification per settings change; the
update loop consumes them one at a time. A failed update is retried by
resubmitting a notification from a detached task, so the loop's receive
point is never blocked by its own retry. Notifications are not coalesced.
"""

import asyncio
import logging

logger = logging.getLogger(__name__)


class UpdateQueue:
    """Single-slot work queue with self-resubmission."""

    def __init__(self):
        self._queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize=1)
        self._resubmissions: set[asyncio.Task] = set()

    async def notify(self, reason: str | None = None) -> None:
        """Push a notification, waiting while a previous one is unread."""
        await self._queue.put(reason)

    async def get(self) -> str | None:
        """Wait for the next notification and return its reason."""
        return await self._queue.get()

    def resubmit(self, reason: str | None = None) -> asyncio.Task:
        """Schedule a notification from a detached task and return immediately."""
        task = asyncio.create_task(self.notify(reason))
        self._resubmissions.add(task)
        task.add_done_callback(self._resubmissions.discard)
        return task

    @property
    def pending_resubmissions(self) -> int:
        return len(self._resubmissions)

    def cancel_pending(self) -> None:
        for task in list(self._resubmissions):
            task.cancel()
