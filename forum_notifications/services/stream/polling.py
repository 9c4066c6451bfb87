"""
Polling fallback for the unread count.

Used when push is disabled or the push channel has permanently failed.
Polls on a fixed interval, pauses while the app is not visible and skips
ticks while an optimistic update is still protected.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional

logger = logging.getLogger(__name__)

VisibilityListener = Callable[[bool], None]


class VisibilityState:
    """
    Foreground/background flag for the host application.

    The in-process counterpart of a browser tab's visibility. The host
    flips it with set_visible() when it moves to or from the background.
    """

    def __init__(self, visible: bool = True):
        self._visible = visible
        self._listeners: List[VisibilityListener] = []

    @property
    def visible(self) -> bool:
        return self._visible

    def set_visible(self, visible: bool) -> None:
        if visible == self._visible:
            return
        self._visible = visible
        for listener in list(self._listeners):
            try:
                listener(visible)
            except Exception:
                logger.exception("Visibility listener failed")

    def add_listener(self, listener: VisibilityListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: VisibilityListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


class UnreadCountPoller:
    """
    Periodic unread-count refresh.

    Polls once immediately on start(), then every interval while visible.
    A tick is skipped entirely while is_protected() reports a pending
    confirmation or an unexpired optimistic update.
    """

    def __init__(
        self,
        poll: Callable[[], Awaitable[Any]],
        is_protected: Callable[[], bool],
        visibility: Optional[VisibilityState] = None,
        interval: float = 30.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize UnreadCountPoller.

        Args:
            poll: Coroutine function fetching and merging the count
            is_protected: Whether local optimistic state must not be disturbed
            visibility: Host visibility flag (always visible if omitted)
            interval: Seconds between polls
            sleep: Awaitable delay, injectable for tests
        """
        self._poll = poll
        self._is_protected = is_protected
        self._visibility = visibility or VisibilityState()
        self._interval = interval
        self._sleep = sleep

        self._task: Optional[asyncio.Task] = None
        self._immediate: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Begin polling. Must be called from a running event loop."""
        if self._task is not None:
            return

        loop = asyncio.get_running_loop()
        self._visibility.add_listener(self._on_visibility_change)
        self._immediate = loop.create_task(self._poll_once())
        self._task = loop.create_task(self._run())
        logger.info(f"Unread count polling started (every {self._interval:.0f}s)")

    def stop(self) -> None:
        """Stop polling and detach the visibility listener. Idempotent."""
        self._visibility.remove_listener(self._on_visibility_change)

        for task in (self._task, self._immediate):
            if task is not None and not task.done():
                task.cancel()

        if self._task is not None:
            logger.info("Unread count polling stopped")
        self._task = None
        self._immediate = None

    async def _run(self) -> None:
        while True:
            await self._sleep(self._interval)

            if not self._visibility.visible:
                continue

            if self._is_protected():
                logger.debug("Skipping unread count poll: optimistic update still protected")
                continue

            await self._poll_once()

    async def _poll_once(self) -> None:
        try:
            await self._poll()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Unread count poll failed: {e}")

    def _on_visibility_change(self, visible: bool) -> None:
        if not visible or self._task is None:
            return
        if self._immediate is not None and not self._immediate.done():
            return
        self._immediate = asyncio.get_running_loop().create_task(self._poll_once())
