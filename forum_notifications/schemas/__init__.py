"""
Schemas for the notification client.
"""

from forum_notifications.schemas.notifications import (
    Notification,
    NotificationsPage,
    UnreadCountResponse,
    MarkAllReadResponse,
    NotificationState,
)
from forum_notifications.schemas.events import (
    ServerSentEvent,
    Connected,
    UnreadCount,
    NewNotification,
    NotificationDeleted,
    StreamError,
    StreamEvent,
    decode_event,
)

__all__ = [
    "Notification",
    "NotificationsPage",
    "UnreadCountResponse",
    "MarkAllReadResponse",
    "NotificationState",
    "ServerSentEvent",
    "Connected",
    "UnreadCount",
    "NewNotification",
    "NotificationDeleted",
    "StreamError",
    "StreamEvent",
    "decode_event",
]
