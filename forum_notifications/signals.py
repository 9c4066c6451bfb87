"""
App-level "content changed elsewhere" signal.

Other parts of the application send it after bulk changes that affect
notifications (a question or answer deleted, for example). A running
notification session re-fetches its list and unread count in response.
"""

import logging
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

ContentChangedListener = Callable[[Optional[str]], None]


class ContentChangedSignal:
    """Minimal synchronous pub/sub for one event kind."""

    def __init__(self):
        self._listeners: List[ContentChangedListener] = []

    def connect(self, listener: ContentChangedListener) -> Callable[[], None]:
        """
        Register a listener.

        Returns:
            Callable that disconnects the listener
        """
        self._listeners.append(listener)

        def disconnect() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return disconnect

    def send(self, reason: Optional[str] = None) -> None:
        """Notify every listener; a failing listener does not stop the rest."""
        logger.debug(f"Content changed signal sent (reason={reason})")
        for listener in list(self._listeners):
            try:
                listener(reason)
            except Exception:
                logger.exception("Content changed listener failed")

    @property
    def receivers(self) -> int:
        return len(self._listeners)
