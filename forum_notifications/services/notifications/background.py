"""
Registry for detached background tasks.

Confirmation calls are allowed to outlive the caller that started them
(e.g. a click handler that navigates away). The registry keeps a strong
reference to each task until it settles and logs failures nobody awaited.
"""

import asyncio
import logging
from typing import Any, Coroutine, Optional, Set

logger = logging.getLogger(__name__)


class BackgroundTaskRegistry:
    """Supervises fire-and-forget tasks for one session."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: Optional[str] = None) -> asyncio.Task:
        """
        Schedule a coroutine and track it until it settles.

        Returns:
            The task; callers may await it but are not required to
        """
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._settled)
        return task

    def _settled(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)

        if task.cancelled():
            return

        # Retrieving the exception marks it handled even when nobody awaits
        error = task.exception()
        if error is not None:
            logger.error(f"Background task {task.get_name()} failed: {error}")

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for outstanding tasks; cancel whatever is left after timeout."""
        if not self._tasks:
            return

        pending = set(self._tasks)
        _, still_running = await asyncio.wait(pending, timeout=timeout)

        for task in still_running:
            task.cancel()

        if still_running:
            logger.warning(f"Cancelled {len(still_running)} background task(s) at teardown")
            await asyncio.gather(*still_running, return_exceptions=True)

    def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
