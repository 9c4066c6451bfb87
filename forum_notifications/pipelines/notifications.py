"""
Notification click pipeline functions.

Turns a notification into a navigation target and handles the
click-through: mark read in the background, navigate immediately.
"""

import asyncio
from typing import Callable, Optional

from forum_notifications.schemas.notifications import Notification
from forum_notifications.services.notifications.session import NotificationSession


def build_notification_link(notification: Notification) -> Optional[str]:
    """
    Build the in-app path a notification points to.

    The question slug is preferred over the numeric id. An answer anchor
    wins over a comment anchor when both are present.

    Returns:
        Path such as "/questions/how-to-x#answer-12", or None if the
        notification references no question
    """
    if notification.related_question_id is None:
        return None

    target = notification.question_slug or str(notification.related_question_id)
    link = f"/questions/{target}"

    if notification.related_answer_id is not None:
        link += f"#answer-{notification.related_answer_id}"
    elif notification.related_comment_id is not None:
        link += f"#comment-{notification.related_comment_id}"

    return link


def open_notification(
    session: NotificationSession,
    notification: Notification,
    navigate: Callable[[str], None],
) -> Optional[asyncio.Task]:
    """
    Handle a click on a notification.

    1. Build the link; a notification without one is ignored
    2. If unread, start mark-as-read (local state changes right away)
    3. Navigate without waiting for the server confirmation

    Returns:
        The background confirmation task, if one was started
    """
    # 1. Build link before anything async
    link = build_notification_link(notification)
    if link is None:
        return None

    # 2. Fire-and-forget mark-as-read; the session registry keeps it alive
    #    and logs a failure nobody awaited
    task = None
    if not notification.read:
        task = session.mark_as_read(notification.id)

    # 3. Navigate
    navigate(link)
    return task

