"""
Typed push-stream events.

One dataclass per wire event name, plus StreamError for channel-level
failures. Listeners receive these instead of raw strings.
"""

import json
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Union

from common.utils.exceptions import MalformedEventError


@dataclass(frozen=True)
class ServerSentEvent:
    """A raw event as framed on the wire."""
    event: str = "message"
    data: str = ""
    id: Optional[str] = None
    retry: Optional[int] = None  # milliseconds


@dataclass(frozen=True)
class Connected:
    """Server acknowledged the stream."""
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class UnreadCount:
    """Live unread count pushed by the server."""
    count: int


@dataclass(frozen=True)
class NewNotification:
    """Trigger to re-fetch the list; payload is opaque."""
    payload: Any = None


@dataclass(frozen=True)
class NotificationDeleted:
    """A notification was deleted on the server."""
    notification_id: int


@dataclass(frozen=True)
class StreamError:
    """Channel failure; terminal means the channel stopped for good."""
    error: Exception
    terminal: bool = False


StreamEvent = Union[Connected, UnreadCount, NewNotification, NotificationDeleted, StreamError]


def _load_json(sse: ServerSentEvent) -> Any:
    try:
        return json.loads(sse.data)
    except ValueError as e:
        raise MalformedEventError(
            message=f"Invalid JSON in '{sse.event}' event",
            details={"data": sse.data[:200]},
        ) from e


def _require_int(payload: Any, key: str, event_name: str) -> int:
    if not isinstance(payload, dict) or key not in payload:
        raise MalformedEventError(message=f"'{event_name}' event is missing '{key}'")

    value = payload[key]
    # bool is an int subclass; a boolean count is never valid
    if isinstance(value, bool):
        raise MalformedEventError(message=f"'{event_name}' event has non-integer '{key}'")

    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise MalformedEventError(
            message=f"'{event_name}' event has non-integer '{key}'"
        ) from e


def decode_event(sse: ServerSentEvent) -> Optional[StreamEvent]:
    """
    Convert a raw wire event into a typed event.

    Args:
        sse: Framed event from the decoder

    Returns:
        Typed event, or None for event names this client does not consume

    Raises:
        MalformedEventError: If a known event carries an undecodable payload
    """
    if sse.event == "connected":
        payload = _load_json(sse) if sse.data else {}
        return Connected(payload=payload if isinstance(payload, dict) else {})

    if sse.event == "unread_count":
        count = _require_int(_load_json(sse), "count", sse.event)
        if count < 0:
            raise MalformedEventError(message="'unread_count' event has negative count")
        return UnreadCount(count=count)

    if sse.event == "new_notification":
        return NewNotification(payload=_load_json(sse))

    if sse.event == "notification_deleted":
        return NotificationDeleted(
            notification_id=_require_int(_load_json(sse), "notificationId", sse.event)
        )

    return None
