"""
Real-time notification client for the Q&A forum.

- schemas: wire models and typed stream events
- services.stream: push channel and polling fallback
- services.notifications: store, actions and session wiring
- pipelines: click-through helpers
"""

from forum_notifications.config import Settings, settings
from forum_notifications.dependencies import create_notification_session
from forum_notifications.schemas import Notification, NotificationState
from forum_notifications.services.notifications import (
    NotificationAPIClient,
    NotificationDispatcher,
    NotificationSession,
    NotificationStore,
)
from forum_notifications.services.stream import (
    ChannelCallbacks,
    NotificationChannel,
    VisibilityState,
    open_notification_channel,
)
from forum_notifications.signals import ContentChangedSignal

__all__ = [
    "Settings",
    "settings",
    "create_notification_session",
    "Notification",
    "NotificationState",
    "NotificationAPIClient",
    "NotificationDispatcher",
    "NotificationSession",
    "NotificationStore",
    "ChannelCallbacks",
    "NotificationChannel",
    "VisibilityState",
    "open_notification_channel",
    "ContentChangedSignal",
]
