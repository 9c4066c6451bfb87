"""
Notification services.

Handles notification state reconciliation, actions and session wiring.
"""

from forum_notifications.services.notifications.api_client import NotificationAPIClient
from forum_notifications.services.notifications.background import BackgroundTaskRegistry
from forum_notifications.services.notifications.dispatcher import NotificationDispatcher
from forum_notifications.services.notifications.session import NotificationSession
from forum_notifications.services.notifications.store import NotificationStore

__all__ = [
    "NotificationAPIClient",
    "BackgroundTaskRegistry",
    "NotificationDispatcher",
    "NotificationSession",
    "NotificationStore",
]
