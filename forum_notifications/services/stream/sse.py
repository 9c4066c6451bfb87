"""
text/event-stream decoding.

Turns the line protocol (event:, data:, id:, retry:, comments) into
ServerSentEvent objects. Comment lines such as ": heartbeat" keep the
connection alive and are never surfaced.
"""

from typing import AsyncIterable, AsyncIterator, List, Optional

from forum_notifications.schemas.events import ServerSentEvent


class SSEDecoder:
    """Incremental decoder; feed one line at a time without its newline."""

    def __init__(self):
        self._event: str = ""
        self._data: List[str] = []
        self._last_event_id: Optional[str] = None
        self._retry: Optional[int] = None

    @property
    def last_event_id(self) -> Optional[str]:
        return self._last_event_id

    @property
    def retry(self) -> Optional[int]:
        """Latest reconnection delay advertised by the server, in ms."""
        return self._retry

    def decode(self, line: str) -> Optional[ServerSentEvent]:
        """
        Consume a single line.

        Args:
            line: Line without trailing CR/LF

        Returns:
            A complete event when a blank line closes one, otherwise None
        """
        line = line.rstrip("\r\n")

        if not line:
            return self._dispatch()

        if line.startswith(":"):
            return None

        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if name == "event":
            self._event = value
        elif name == "data":
            self._data.append(value)
        elif name == "id":
            # Ids containing NUL are ignored by the protocol
            if "\0" not in value:
                self._last_event_id = value
        elif name == "retry":
            if value.isdigit():
                self._retry = int(value)
        # Unknown fields are ignored

        return None

    def _dispatch(self) -> Optional[ServerSentEvent]:
        if not self._data:
            self._event = ""
            return None

        sse = ServerSentEvent(
            event=self._event or "message",
            data="\n".join(self._data),
            id=self._last_event_id,
            retry=self._retry,
        )

        self._event = ""
        self._data = []
        return sse


async def iter_sse(
    lines: AsyncIterable[str],
    decoder: Optional[SSEDecoder] = None,
) -> AsyncIterator[ServerSentEvent]:
    """Yield events from an async source of lines (e.g. httpx aiter_lines)."""
    decoder = decoder or SSEDecoder()
    async for line in lines:
        sse = decoder.decode(line)
        if sse is not None:
            yield sse
