"""Shared test fixtures for the notification client tests."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from forum_notifications.config import Settings
from forum_notifications.schemas.notifications import (
    MarkAllReadResponse,
    Notification,
    NotificationsPage,
)
from forum_notifications.services.notifications.api_client import NotificationAPIClient
from forum_notifications.services.notifications.store import NotificationStore
from helpers import FakeClock


@pytest.fixture
def test_settings():
    return Settings(
        API_BASE_URL="http://forum.test/api",
        PUSH_ENABLED=True,
        RECONCILE_INTERVAL_SECONDS=0,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return NotificationStore(protection_window=30.0, clock=clock)


@pytest.fixture
def make_notification():
    def _make(notification_id: int, read: bool = False, **extra) -> Notification:
        return Notification(
            id=notification_id,
            message=f"Notification {notification_id}",
            read=read,
            read_at=datetime(2026, 1, 15, tzinfo=timezone.utc) if read else None,
            **extra,
        )
    return _make


@pytest.fixture
def seeded_store(store, make_notification):
    """Five unread notifications, unreadCount=5."""
    store.replace([make_notification(i) for i in range(1, 6)], 5)
    return store


@pytest.fixture
def mock_api(make_notification):
    """NotificationAPIClient double; every endpoint is an AsyncMock."""
    api = MagicMock(spec=NotificationAPIClient)
    api.get_notifications = AsyncMock(return_value=NotificationsPage(notifications=[], unreadCount=0))
    api.get_unread_count = AsyncMock(return_value=0)
    api.mark_as_read = AsyncMock(
        side_effect=lambda notification_id: make_notification(notification_id, read=True)
    )
    api.mark_all_as_read = AsyncMock(return_value=MarkAllReadResponse(message="ok", count=0))
    api.delete_notification = AsyncMock(return_value=None)
    api.aclose = AsyncMock()
    return api
