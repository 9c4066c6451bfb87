"""
Notification actions for the rest of the application.

Each action mutates the store optimistically, confirms with the server
and then reconciles or rolls back:

mark_as_read:
    Unread -> (optimistic) pending & read
        -> confirmed: read, protection window refreshed
        -> rejected: unread again (rollback), error re-raised
        -> timed out: read kept unconfirmed, still protected, error re-raised

Deletion is not optimistic: the server delete runs first.
"""

import asyncio
import logging
from typing import Optional

from common.utils.exceptions import NotificationClientError, RequestTimeoutError
from forum_notifications.services.notifications.api_client import NotificationAPIClient
from forum_notifications.services.notifications.background import BackgroundTaskRegistry
from forum_notifications.services.notifications.store import NotificationStore, ReadMark

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """
    Optimistic-mutate, confirm, reconcile-or-rollback actions.

    The store is the only thing mutated; the dispatcher owns the ordering
    between the local change and the server round-trip.
    """

    def __init__(
        self,
        store: NotificationStore,
        api: NotificationAPIClient,
        tasks: Optional[BackgroundTaskRegistry] = None,
    ):
        """
        Initialize NotificationDispatcher.

        Args:
            store: Session store
            api: REST client
            tasks: Registry supervising detached confirmations
        """
        self._store = store
        self._api = api
        self._tasks = tasks or BackgroundTaskRegistry()

    @property
    def tasks(self) -> BackgroundTaskRegistry:
        return self._tasks

    # =========================================================================
    # Mark as read
    # =========================================================================

    def mark_as_read(self, notification_id: int) -> asyncio.Task:
        """
        Mark a notification read right away and confirm in the background.

        The local state changes before this returns. The returned task runs
        the confirmation to completion even if nobody awaits it; awaiting it
        re-raises a rejection or timeout.

        Args:
            notification_id: Notification to mark

        Returns:
            Task settling with the server's copy of the notification (or None
            for the already-read no-op)
        """
        cached = self._store.get(notification_id)
        if cached is not None and cached.read:
            return self._tasks.spawn(_noop(), name=f"mark-read-{notification_id}-noop")

        self._store.record_optimistic(notification_id)
        self._store.begin_confirmation(notification_id)
        mark = self._store.mark_read_local(notification_id)

        return self._tasks.spawn(
            self._confirm_read(notification_id, mark),
            name=f"mark-read-{notification_id}",
        )

    async def _confirm_read(self, notification_id: int, mark: ReadMark):
        try:
            confirmed = await self._api.mark_as_read(notification_id)
        except asyncio.CancelledError:
            self._store.end_confirmation(notification_id)
            raise
        except RequestTimeoutError:
            self._store.end_confirmation(notification_id)
            # The write may still land; keep the optimistic state protected
            self._store.record_optimistic(notification_id)
            logger.warning(
                f"Mark-as-read for notification {notification_id} timed out; keeping optimistic state"
            )
            raise
        except Exception as e:
            self._store.end_confirmation(notification_id)
            self._store.forget_optimistic(notification_id)
            self._store.mark_unread_local(notification_id, mark)
            logger.error(f"Error marking notification {notification_id} as read: {e}")
            raise

        self._store.end_confirmation(notification_id)
        self._store.record_optimistic(notification_id)
        logger.debug(f"Notification {notification_id} marked as read")
        return confirmed

    # =========================================================================
    # Mark all as read
    # =========================================================================

    async def mark_all_as_read(self) -> None:
        """
        Mark every cached notification read, restoring the snapshot on failure.

        Raises:
            NotificationClientError: Server call failed; state was restored
        """
        previous = self._store.snapshot()
        self._store.mark_all_read_local()

        try:
            result = await self._api.mark_all_as_read()
        except Exception as e:
            logger.error(f"Error marking all notifications as read: {e}")
            self._store.restore(previous)
            raise

        logger.debug(f"Marked {result.count} notifications as read")

    # =========================================================================
    # Delete
    # =========================================================================

    async def remove_notification(self, notification_id: int) -> None:
        """
        Delete on the server, then drop locally.

        Raises:
            NotificationClientError: Server call failed; state untouched
        """
        try:
            await self._api.delete_notification(notification_id)
        except Exception as e:
            logger.error(f"Error deleting notification {notification_id}: {e}")
            raise

        self._store.remove_confirmed(notification_id)
        logger.debug(f"Notification {notification_id} deleted")

    # =========================================================================
    # Fetch
    # =========================================================================

    async def fetch_notifications(self, unread_only: bool = False) -> None:
        """
        Replace the cached list and count from the server.

        Failures land in the store's error field; cached state is kept.
        """
        self._store.set_loading(True)
        self._store.set_error(None)

        try:
            page = await self._api.get_notifications(unread_only=unread_only)
        except (NotificationClientError, ValueError) as e:
            message = getattr(e, "message", None) or "Failed to fetch notifications"
            logger.error(f"Error fetching notifications: {e}")
            self._store.set_error(message)
            return
        finally:
            self._store.set_loading(False)

        self._store.replace(page.notifications, page.unreadCount)

    async def fetch_unread_count(self) -> None:
        """Fetch the unread count and merge it; failures are logged only."""
        try:
            count = await self._api.get_unread_count()
        except (NotificationClientError, ValueError) as e:
            logger.warning(f"Error fetching unread count (non-blocking): {e}")
            return

        self._store.apply_server_count(count)


async def _noop() -> None:
    return None
