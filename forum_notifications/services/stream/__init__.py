"""
Transport layer: push stream and polling fallback.
"""

from forum_notifications.services.stream.sse import SSEDecoder, iter_sse
from forum_notifications.services.stream.channel import (
    NotificationChannel,
    ChannelCallbacks,
    open_notification_channel,
    resolve_token,
)
from forum_notifications.services.stream.polling import UnreadCountPoller, VisibilityState

__all__ = [
    "SSEDecoder",
    "iter_sse",
    "NotificationChannel",
    "ChannelCallbacks",
    "open_notification_channel",
    "resolve_token",
    "UnreadCountPoller",
    "VisibilityState",
]
