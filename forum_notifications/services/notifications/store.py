"""
Reconciliation store for the session's notifications.

The store is the only writer of the cached list and unread count. Server
data (initial fetch, push events, poll responses) and local optimistic
actions all go through it so one precedence policy decides who wins.

Merge rule for server-originated counts:
- a count at or below the current value is accepted
- a higher count is accepted only when no optimistic update is inside its
  protection window and no confirmation is pending; otherwise it is
  presumed stale and the current value is kept
"""

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Set, Tuple

from forum_notifications.schemas.notifications import Notification, NotificationState

logger = logging.getLogger(__name__)

StateListener = Callable[[NotificationState], None]

# (notifications, unread_count) captured before a bulk optimistic change
Snapshot = Tuple[Tuple[Notification, ...], int]


class ReadMark(NamedTuple):
    """Outcome of an optimistic mark-as-read."""
    decremented: bool
    cached: bool


class NotificationStore:
    """
    Session-scoped notification state.

    Optimistic records map notification id -> clock() timestamp of the last
    local mutation; records older than the protection window are ignored
    (expired lazily, never swept). Pending confirmations are ids whose
    mark-as-read call has not settled yet.
    """

    def __init__(
        self,
        protection_window: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize NotificationStore.

        Args:
            protection_window: Seconds an optimistic update is trusted over server data
            clock: Monotonic time source, injectable for tests
        """
        self._protection_window = protection_window
        self._clock = clock

        self._notifications: List[Notification] = []
        self._unread_count = 0
        self._loading = False
        self._error: Optional[str] = None

        self._optimistic: Dict[int, float] = {}
        self._pending: Set[int] = set()
        self._listeners: List[StateListener] = []

    # ─────────────────────────────────────────────────────────────────
    # Read access
    # ─────────────────────────────────────────────────────────────────

    @property
    def notifications(self) -> Tuple[Notification, ...]:
        return tuple(self._notifications)

    @property
    def unread_count(self) -> int:
        return self._unread_count

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def state(self) -> NotificationState:
        return NotificationState(
            notifications=tuple(self._notifications),
            unread_count=self._unread_count,
            loading=self._loading,
            error=self._error,
        )

    def get(self, notification_id: int) -> Optional[Notification]:
        for notification in self._notifications:
            if notification.id == notification_id:
                return notification
        return None

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Register a listener called with a fresh snapshot after every change.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _changed(self) -> None:
        if not self._listeners:
            return
        snapshot = self.state
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Notification state listener failed")

    # ─────────────────────────────────────────────────────────────────
    # Protection window
    # ─────────────────────────────────────────────────────────────────

    def _is_fresh(self, timestamp: float) -> bool:
        return self._clock() - timestamp < self._protection_window

    def has_recent_optimistic_update(self) -> bool:
        return any(self._is_fresh(ts) for ts in self._optimistic.values())

    def has_pending_confirmation(self) -> bool:
        return bool(self._pending)

    def is_protected(self) -> bool:
        """True while server data must not overwrite local optimistic state."""
        return self.has_pending_confirmation() or self.has_recent_optimistic_update()

    def record_optimistic(self, notification_id: int) -> None:
        """Start or extend the protection window for a notification."""
        self._optimistic[notification_id] = self._clock()

    def forget_optimistic(self, notification_id: int) -> None:
        self._optimistic.pop(notification_id, None)

    def begin_confirmation(self, notification_id: int) -> None:
        self._pending.add(notification_id)

    def end_confirmation(self, notification_id: int) -> None:
        self._pending.discard(notification_id)

    def _protected_ids(self) -> Set[int]:
        fresh = {nid for nid, ts in self._optimistic.items() if self._is_fresh(ts)}
        return fresh | self._pending

    # ─────────────────────────────────────────────────────────────────
    # Server-originated updates
    # ─────────────────────────────────────────────────────────────────

    def apply_server_count(self, count: int) -> bool:
        """
        Merge an unread count from the push stream or a poll.

        Args:
            count: Server's unread count

        Returns:
            True if the count was accepted
        """
        count = max(0, count)

        if count > self._unread_count and self.is_protected():
            logger.debug(
                f"Ignoring stale unread count {count} (local {self._unread_count}, "
                f"optimistic update protected)"
            )
            return False

        if count != self._unread_count:
            self._unread_count = count
            self._changed()
        return True

    def replace(self, notifications: Iterable[Notification], unread_count: int) -> None:
        """
        Authoritative full replace from a list fetch.

        Notifications still inside their protection window keep their local
        read state, and the count goes through the merge rule while any
        protection is active.
        """
        incoming = list(notifications)
        protected = self._protected_ids()

        if protected:
            overlaid = []
            for notification in incoming:
                if notification.id in protected and not notification.read:
                    local = self.get(notification.id)
                    if local is not None and local.read:
                        notification = notification.model_copy(
                            update={"read": True, "read_at": local.read_at}
                        )
                overlaid.append(notification)
            incoming = overlaid

        self._notifications = incoming

        unread_count = max(0, unread_count)
        if unread_count > self._unread_count and self.is_protected():
            logger.debug(
                f"Keeping local unread count {self._unread_count} over fetched {unread_count}"
            )
        else:
            self._unread_count = unread_count

        self._changed()

    def remove(self, notification_id: int) -> Optional[Notification]:
        """
        Drop a notification from the cached list.

        The unread count is left alone; it is reconciled through the count
        channel independently.

        Returns:
            The removed notification, if it was cached
        """
        removed = self.get(notification_id)
        if removed is None:
            return None

        self._notifications = [n for n in self._notifications if n.id != notification_id]
        self._changed()
        return removed

    # ─────────────────────────────────────────────────────────────────
    # Local mutations (used by the dispatcher)
    # ─────────────────────────────────────────────────────────────────

    def _update(self, notification_id: int, **changes) -> bool:
        for index, notification in enumerate(self._notifications):
            if notification.id == notification_id:
                self._notifications[index] = notification.model_copy(update=changes)
                return True
        return False

    def mark_read_local(self, notification_id: int) -> ReadMark:
        """
        Set read, stamp read_at and decrement the count (floored at 0).

        Returns:
            What changed, for mark_unread_local to undo exactly that
        """
        cached = self._update(notification_id, read=True, read_at=datetime.now(timezone.utc))
        decremented = self._unread_count > 0
        if decremented:
            self._unread_count -= 1
        self._changed()
        return ReadMark(decremented=decremented, cached=cached)

    def mark_unread_local(self, notification_id: int, mark: Optional[ReadMark] = None) -> None:
        """
        Undo mark_read_local.

        The count is only given back when the read actually decremented it
        and the notification has not since been removed from the list.
        """
        mark = mark or ReadMark(decremented=True, cached=True)
        still_cached = self._update(notification_id, read=False, read_at=None)
        if mark.decremented and (still_cached or not mark.cached):
            self._unread_count += 1
        self._changed()

    def mark_all_read_local(self) -> None:
        now = datetime.now(timezone.utc)
        self._notifications = [
            n if n.read else n.model_copy(update={"read": True, "read_at": now})
            for n in self._notifications
        ]
        self._unread_count = 0
        self._changed()

    def remove_confirmed(self, notification_id: int) -> Optional[Notification]:
        """Remove after a confirmed server delete, decrementing if it was unread."""
        removed = self.get(notification_id)
        if removed is None:
            return None

        self._notifications = [n for n in self._notifications if n.id != notification_id]
        if not removed.read:
            self._unread_count = max(0, self._unread_count - 1)
        self._changed()
        return removed

    def snapshot(self) -> Snapshot:
        return tuple(self._notifications), self._unread_count

    def restore(self, snapshot: Snapshot) -> None:
        notifications, unread_count = snapshot
        self._notifications = list(notifications)
        self._unread_count = unread_count
        self._changed()

    # ─────────────────────────────────────────────────────────────────
    # Fetch status and teardown
    # ─────────────────────────────────────────────────────────────────

    def set_loading(self, loading: bool) -> None:
        if loading != self._loading:
            self._loading = loading
            self._changed()

    def set_error(self, error: Optional[str]) -> None:
        if error != self._error:
            self._error = error
            self._changed()

    def clear(self) -> None:
        """Drop all session state (logout)."""
        self._notifications = []
        self._unread_count = 0
        self._loading = False
        self._error = None
        self._optimistic.clear()
        self._pending.clear()
        self._changed()
