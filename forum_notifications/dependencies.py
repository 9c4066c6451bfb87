"""
Factories for the notification client.

Builds a session-scoped object graph instead of process-wide singletons:
call create_notification_session() at login and close the result at
logout.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

import httpx

from forum_notifications.config import Settings, settings as default_settings
from forum_notifications.services.notifications.api_client import NotificationAPIClient
from forum_notifications.services.notifications.session import NotificationSession
from forum_notifications.services.notifications.store import NotificationStore
from forum_notifications.services.stream.channel import NotificationChannel, TokenProvider
from forum_notifications.services.stream.polling import VisibilityState
from forum_notifications.signals import ContentChangedSignal


def get_settings() -> Settings:
    """Return the global settings, validated."""
    default_settings.validate_required()
    return default_settings


def create_notification_session(
    token_provider: TokenProvider,
    settings: Optional[Settings] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    signal: Optional[ContentChangedSignal] = None,
    visibility: Optional[VisibilityState] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> NotificationSession:
    """
    Build a NotificationSession and its collaborators.

    Args:
        token_provider: Returns the current credential; called per request
            and per stream connect so rotated tokens are picked up
        settings: Client settings (validated global instance if omitted)
        http_client: Shared httpx client; the session creates and closes
            its own if omitted
        signal: App-level content-changed signal
        visibility: Host visibility flag
        sleep: Awaitable delay, injectable for tests

    Returns:
        An unstarted session; use `await session.start()` or `async with`
    """
    settings = settings or get_settings()

    api = NotificationAPIClient(token_provider, settings, http_client)

    def channel_factory() -> NotificationChannel:
        return NotificationChannel(token_provider, api.http_client, settings, sleep)

    return NotificationSession(
        api=api,
        channel_factory=channel_factory,
        settings=settings,
        store=NotificationStore(protection_window=settings.PROTECTION_WINDOW_SECONDS),
        signal=signal,
        visibility=visibility,
        sleep=sleep,
    )
