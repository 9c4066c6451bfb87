"""
Push channel for real-time notification events.

Holds a single server-sent-events connection open for the session and
turns wire events into typed StreamEvent objects for subscribers.

Reconnect policy:
- A connect attempt that fails (network error, non-200, wrong content
  type) is a terminal close. Attempt n waits n * RECONNECT_DELAY_SECONDS;
  once MAX_RECONNECT_ATTEMPTS is spent the channel emits a terminal
  StreamError and stops for good. The caller falls back to polling.
- An open connection that drops is non-terminal: a StreamError is emitted
  and the stream retries on its own after the server-advertised retry
  delay, without spending an attempt.
- A successful open resets the attempt counter.
- A token provider that raises counts as a failed connect attempt.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Union

import httpx

from common.utils.exceptions import (
    MalformedEventError,
    NotificationClientError,
    RequestTimeoutError,
    StreamFailedError,
    TransportError,
)
from forum_notifications.config import Settings, settings as default_settings
from forum_notifications.schemas.events import (
    Connected,
    NewNotification,
    NotificationDeleted,
    StreamError,
    StreamEvent,
    UnreadCount,
    decode_event,
)
from forum_notifications.services.stream.sse import SSEDecoder, iter_sse

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Union[Optional[str], Awaitable[Optional[str]]]]
StreamListener = Callable[[StreamEvent], None]


async def resolve_token(token_provider: TokenProvider) -> Optional[str]:
    """Call a sync or async token provider."""
    token = token_provider()
    if inspect.isawaitable(token):
        token = await token
    return token


class _ConnectFailed(NotificationClientError):
    """Server refused to open the stream."""

    default_code = "STREAM_REFUSED"


class _TokenUnavailable(NotificationClientError):
    """Token provider raised while preparing a connect."""

    default_code = "TOKEN_UNAVAILABLE"


class NotificationChannel:
    """
    Long-lived push connection with bounded reconnects.

    Usage:
        channel = NotificationChannel(get_token, http_client)
        unsubscribe = channel.subscribe(handle_event)
        channel.open()
        ...
        channel.close()
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        http_client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize NotificationChannel.

        Args:
            token_provider: Returns the current credential; called on every connect
            http_client: Shared client; one is created and owned if omitted
            settings: Client settings (defaults to the global instance)
            sleep: Awaitable delay, injectable for tests
        """
        self._token_provider = token_provider
        self._settings = settings or default_settings
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient()
        self._sleep = sleep

        self._listeners: List[StreamListener] = []
        self._task: Optional[asyncio.Task] = None
        self._decoder = SSEDecoder()
        self._attempts = 0
        self._opened = False
        self._closed = False
        self._failed = False

    # ─────────────────────────────────────────────────────────────────
    # Subscription
    # ─────────────────────────────────────────────────────────────────

    def subscribe(self, listener: StreamListener) -> Callable[[], None]:
        """
        Register a listener for typed stream events.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: StreamEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Stream listener failed on {type(event).__name__}")

    # ─────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def failed(self) -> bool:
        """True once the reconnect budget was exhausted."""
        return self._failed

    @property
    def connected(self) -> bool:
        return self._opened and not self._closed

    @property
    def reconnect_attempts(self) -> int:
        return self._attempts

    def open(self) -> None:
        """Start the connection task. Must be called from a running event loop."""
        if self._closed or self._task is not None:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def close(self) -> None:
        """
        Stop the channel.

        Cancels any pending reconnect wait and the active connection.
        Safe to call repeatedly, before open() or after a permanent failure.
        """
        if self._closed:
            return
        self._closed = True
        self._opened = False
        self._listeners.clear()

        # A listener closing from inside the connection task lets it unwind itself
        if (
            self._task is not None
            and not self._task.done()
            and not self._running_in_task()
        ):
            self._task.cancel()

        logger.debug("Notification stream closed")

    def _running_in_task(self) -> bool:
        try:
            return asyncio.current_task() is self._task
        except RuntimeError:
            return False

    async def wait_closed(self) -> None:
        """Wait until the connection task has fully unwound."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def aclose(self) -> None:
        self.close()
        await self.wait_closed()
        if self._task is None and self._owns_client:
            await self._client.aclose()

    # ─────────────────────────────────────────────────────────────────
    # Connection loop
    # ─────────────────────────────────────────────────────────────────

    async def _run(self) -> None:
        try:
            while not self._closed:
                self._opened = False
                try:
                    token = await self._next_token()
                    if not token:
                        logger.warning("Cannot connect notification stream: no token available")
                        self._fail(StreamFailedError(message="No token available for stream connection"))
                        return

                    await self._consume(token)
                    error: NotificationClientError = TransportError(message="Stream ended by server")
                except httpx.TimeoutException as e:
                    error = RequestTimeoutError(message=f"Stream timed out: {e}")
                except httpx.HTTPError as e:
                    error = TransportError(message=f"Stream connection error: {e}")
                except NotificationClientError as e:
                    error = e

                if self._closed:
                    return

                if self._opened:
                    # Dropped while open: the stream retries on its own
                    self._opened = False
                    logger.warning(f"Notification stream dropped: {error.message}")
                    self._emit(StreamError(error=error, terminal=False))
                    if self._closed:
                        return
                    await self._sleep(self._retry_delay())
                    continue

                if self._attempts >= self._settings.MAX_RECONNECT_ATTEMPTS:
                    logger.warning(
                        f"Notification stream failed after {self._attempts} reconnect attempts"
                    )
                    self._fail(StreamFailedError(
                        message="Stream connection failed after multiple attempts",
                        details={"lastError": error.to_dict()},
                    ))
                    return

                self._attempts += 1
                delay = self._settings.RECONNECT_DELAY_SECONDS * self._attempts
                logger.info(
                    f"Notification stream closed ({error.message}); "
                    f"reconnect {self._attempts}/{self._settings.MAX_RECONNECT_ATTEMPTS} in {delay:.0f}s"
                )
                await self._sleep(delay)
        finally:
            if self._owns_client:
                await self._client.aclose()

    async def _next_token(self) -> Optional[str]:
        try:
            return await resolve_token(self._token_provider)
        except Exception as e:
            logger.warning(f"Token provider failed for notification stream: {e}")
            raise _TokenUnavailable(message=f"Token provider failed: {e}") from e

    async def _consume(self, token: str) -> None:
        timeout = httpx.Timeout(
            self._settings.REQUEST_TIMEOUT_SECONDS,
            read=self._settings.STREAM_READ_TIMEOUT_SECONDS,
        )

        async with self._client.stream(
            "GET",
            self._settings.stream_url(),
            params={"token": token},
            headers={"Accept": "text/event-stream", "Cache-Control": "no-cache"},
            timeout=timeout,
        ) as response:
            content_type = response.headers.get("content-type", "")
            if response.status_code != 200 or "text/event-stream" not in content_type:
                raise _ConnectFailed(
                    message=f"Stream refused with HTTP {response.status_code}",
                    status_code=response.status_code,
                )

            self._on_open()

            async for sse in iter_sse(response.aiter_lines(), self._decoder):
                if self._closed:
                    return
                try:
                    event = decode_event(sse)
                except MalformedEventError as e:
                    logger.warning(f"Dropping malformed stream event: {e.message}")
                    continue

                if event is None:
                    logger.debug(f"Ignoring unknown stream event '{sse.event}'")
                    continue

                self._emit(event)
                if self._closed:
                    return

    def _on_open(self) -> None:
        self._opened = True
        if self._attempts:
            logger.info(f"Notification stream reconnected after {self._attempts} attempt(s)")
        else:
            logger.debug("Notification stream opened")
        self._attempts = 0

    def _retry_delay(self) -> float:
        if self._decoder.retry is not None:
            return self._decoder.retry / 1000
        return self._settings.STREAM_RETRY_SECONDS

    def _fail(self, error: NotificationClientError) -> None:
        self._failed = True
        self._emit(StreamError(error=error, terminal=True))


# =============================================================================
# Callback adapter
# =============================================================================

@dataclass
class ChannelCallbacks:
    """Per-event callbacks for callers that prefer them to a listener."""
    on_connected: Optional[Callable[[], None]] = None
    on_unread_count: Optional[Callable[[int], None]] = None
    on_new_notification: Optional[Callable[[], None]] = None
    on_notification_deleted: Optional[Callable[[int], None]] = None
    on_error: Optional[Callable[[Exception], None]] = None


def open_notification_channel(
    token_provider: TokenProvider,
    callbacks: ChannelCallbacks,
    http_client: Optional[httpx.AsyncClient] = None,
    settings: Optional[Settings] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Callable[[], None]:
    """
    Open a push channel wired to plain callbacks.

    Args:
        token_provider: Returns the current credential
        callbacks: Handlers for each event kind
        http_client: Optional shared client
        settings: Client settings
        sleep: Awaitable delay, injectable for tests

    Returns:
        close() function for deterministic teardown
    """
    channel = NotificationChannel(token_provider, http_client, settings, sleep)

    def dispatch(event: StreamEvent) -> None:
        if isinstance(event, Connected):
            if callbacks.on_connected:
                callbacks.on_connected()
        elif isinstance(event, UnreadCount):
            if callbacks.on_unread_count:
                callbacks.on_unread_count(event.count)
        elif isinstance(event, NewNotification):
            if callbacks.on_new_notification:
                callbacks.on_new_notification()
        elif isinstance(event, NotificationDeleted):
            if callbacks.on_notification_deleted:
                callbacks.on_notification_deleted(event.notification_id)
        elif isinstance(event, StreamError):
            if callbacks.on_error:
                callbacks.on_error(event.error)

    channel.subscribe(dispatch)
    channel.open()
    return channel.close
