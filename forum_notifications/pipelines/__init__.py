"""
Pipeline functions that compose notification services.
"""

from forum_notifications.pipelines.notifications import build_notification_link, open_notification

__all__ = ["build_notification_link", "open_notification"]
