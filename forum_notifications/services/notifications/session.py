"""
Session-scoped wiring of the notification subsystem.

A NotificationSession is built at login and closed at logout. It owns the
store, the dispatcher, the push channel and the polling fallback, and
routes transport events into the store.

Transport modes:
- push: the stream delivers counts, new-notification triggers and deletions
- polling: the unread count is polled when push is disabled or the stream
  permanently failed
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from forum_notifications.config import Settings, settings as default_settings
from forum_notifications.schemas.events import (
    Connected,
    NewNotification,
    NotificationDeleted,
    StreamError,
    StreamEvent,
    UnreadCount,
)
from forum_notifications.schemas.notifications import NotificationState
from forum_notifications.services.notifications.api_client import NotificationAPIClient
from forum_notifications.services.notifications.background import BackgroundTaskRegistry
from forum_notifications.services.notifications.dispatcher import NotificationDispatcher
from forum_notifications.services.notifications.store import NotificationStore, StateListener
from forum_notifications.services.stream.channel import NotificationChannel
from forum_notifications.services.stream.polling import UnreadCountPoller, VisibilityState
from forum_notifications.signals import ContentChangedSignal

logger = logging.getLogger(__name__)

ChannelFactory = Callable[[], NotificationChannel]

MODE_IDLE = "idle"
MODE_PUSH = "push"
MODE_POLLING = "polling"
MODE_STOPPED = "stopped"


class NotificationSession:
    """
    Notification state and transports for one authenticated session.

    Usage:
        async with create_notification_session(get_token) as session:
            session.subscribe(render)
            session.mark_as_read(42)
    """

    def __init__(
        self,
        api: NotificationAPIClient,
        channel_factory: ChannelFactory,
        settings: Optional[Settings] = None,
        store: Optional[NotificationStore] = None,
        signal: Optional[ContentChangedSignal] = None,
        visibility: Optional[VisibilityState] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize NotificationSession.

        Args:
            api: REST client
            channel_factory: Builds a fresh push channel
            settings: Client settings (defaults to the global instance)
            store: Session store (a new one if omitted)
            signal: App-level content-changed signal to follow
            visibility: Host visibility flag
            sleep: Awaitable delay, injectable for tests
        """
        self._settings = settings or default_settings
        self._api = api
        self._channel_factory = channel_factory
        self._store = store or NotificationStore(
            protection_window=self._settings.PROTECTION_WINDOW_SECONDS
        )
        self._signal = signal or ContentChangedSignal()
        self._visibility = visibility or VisibilityState()
        self._sleep = sleep

        self._tasks = BackgroundTaskRegistry()
        self._dispatcher = NotificationDispatcher(self._store, api, self._tasks)

        self._mode = MODE_IDLE
        self._channel: Optional[NotificationChannel] = None
        self._poller: Optional[UnreadCountPoller] = None
        self._reconciler: Optional[asyncio.Task] = None
        self._disconnect_signal: Optional[Callable[[], None]] = None

    # ─────────────────────────────────────────────────────────────────
    # Exposed state
    # ─────────────────────────────────────────────────────────────────

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def store(self) -> NotificationStore:
        return self._store

    @property
    def dispatcher(self) -> NotificationDispatcher:
        return self._dispatcher

    @property
    def channel(self) -> Optional[NotificationChannel]:
        return self._channel

    @property
    def poller(self) -> Optional[UnreadCountPoller]:
        return self._poller

    @property
    def tasks(self) -> BackgroundTaskRegistry:
        return self._tasks

    @property
    def state(self) -> NotificationState:
        return self._store.state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        return self._store.subscribe(listener)

    # ─────────────────────────────────────────────────────────────────
    # Actions
    # ─────────────────────────────────────────────────────────────────

    def mark_as_read(self, notification_id: int) -> asyncio.Task:
        return self._dispatcher.mark_as_read(notification_id)

    async def mark_all_as_read(self) -> None:
        await self._dispatcher.mark_all_as_read()

    async def remove_notification(self, notification_id: int) -> None:
        await self._dispatcher.remove_notification(notification_id)

    async def fetch_notifications(self, unread_only: bool = False) -> None:
        await self._dispatcher.fetch_notifications(unread_only)

    async def fetch_unread_count(self) -> None:
        await self._dispatcher.fetch_unread_count()

    # ─────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Initial fetch, then push (or polling) and the reconcile safety net."""
        if self._mode != MODE_IDLE:
            return

        logger.info("Starting notification session")
        self._disconnect_signal = self._signal.connect(self._on_content_changed)

        await self._dispatcher.fetch_notifications()

        if self._settings.PUSH_ENABLED:
            self._start_push()
            await self._dispatcher.fetch_unread_count()
        else:
            self._start_polling()

        if self._settings.RECONCILE_INTERVAL_SECONDS > 0:
            self._reconciler = asyncio.get_running_loop().create_task(self._reconcile_loop())

    def _start_push(self) -> None:
        self._mode = MODE_PUSH
        self._channel = self._channel_factory()
        self._channel.subscribe(self._on_stream_event)
        self._channel.open()

    def _start_polling(self) -> None:
        self._mode = MODE_POLLING
        self._poller = UnreadCountPoller(
            poll=self._dispatcher.fetch_unread_count,
            is_protected=self._store.is_protected,
            visibility=self._visibility,
            interval=self._settings.POLL_INTERVAL_SECONDS,
            sleep=self._sleep,
        )
        self._poller.start()

    async def aclose(self) -> None:
        """Tear down transports, settle confirmations and clear state. Idempotent."""
        if self._mode == MODE_STOPPED:
            return
        self._mode = MODE_STOPPED

        if self._disconnect_signal is not None:
            self._disconnect_signal()
            self._disconnect_signal = None

        if self._channel is not None:
            self._channel.close()
            await self._channel.wait_closed()

        if self._poller is not None:
            self._poller.stop()

        if self._reconciler is not None:
            self._reconciler.cancel()
            await asyncio.gather(self._reconciler, return_exceptions=True)
            self._reconciler = None

        await self._tasks.drain(timeout=self._settings.CONFIRMATION_TIMEOUT_SECONDS)
        self._store.clear()
        await self._api.aclose()
        logger.info("Notification session closed")

    async def __aenter__(self) -> "NotificationSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ─────────────────────────────────────────────────────────────────
    # Event routing
    # ─────────────────────────────────────────────────────────────────

    def _on_stream_event(self, event: StreamEvent) -> None:
        if self._mode != MODE_PUSH:
            return

        if isinstance(event, UnreadCount):
            self._store.apply_server_count(event.count)
        elif isinstance(event, NewNotification):
            self._tasks.spawn(self._dispatcher.fetch_notifications(), name="refetch-on-new")
        elif isinstance(event, NotificationDeleted):
            self._store.remove(event.notification_id)
        elif isinstance(event, Connected):
            logger.info("Notification stream connected")
        elif isinstance(event, StreamError):
            if event.terminal:
                logger.warning(f"Notification stream unavailable, falling back to polling: {event.error}")
                self._fall_back_to_polling()
            else:
                logger.debug(f"Notification stream error (retrying): {event.error}")

    def _fall_back_to_polling(self) -> None:
        if self._channel is not None:
            self._channel.close()
        self._start_polling()

    def _on_content_changed(self, reason: Optional[str]) -> None:
        if self._mode in (MODE_IDLE, MODE_STOPPED):
            return
        logger.debug(f"Refreshing notifications after content change ({reason})")
        self._tasks.spawn(self._dispatcher.fetch_notifications(), name="refetch-on-change")
        self._tasks.spawn(self._dispatcher.fetch_unread_count(), name="recount-on-change")

    async def _reconcile_loop(self) -> None:
        # Safety net for timed-out confirmations that never landed
        while True:
            await self._sleep(self._settings.RECONCILE_INTERVAL_SECONDS)

            if not self._visibility.visible or self._store.is_protected():
                continue

            logger.debug("Reconciling notifications with the server")
            await self._dispatcher.fetch_notifications()
