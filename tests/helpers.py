"""Test doubles and builders shared across test modules."""

import asyncio
import json

import httpx


# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------

class FakeClock:
    """Monotonic clock the test moves by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Records requested delays and yields once instead of waiting."""

    def __init__(self):
        self.calls = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)
        await asyncio.sleep(0)


class ManualSleep:
    """Blocks every sleeper until the test calls release()."""

    def __init__(self):
        self.calls = []
        self._waiters = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        await waiter

    @property
    def waiting(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    async def release(self) -> None:
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)
        await settle()


async def settle(rounds: int = 20) -> None:
    """Let ready tasks run until the loop goes quiet."""
    for _ in range(rounds):
        await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

def sse_frame(event: str, data) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


def sse_response(*frames: str, status_code: int = 200) -> httpx.Response:
    """Build a text/event-stream response from pre-framed chunks."""
    return httpx.Response(
        status_code,
        headers={"content-type": "text/event-stream"},
        content="".join(frames).encode(),
    )


def notification_payload(notification_id: int, read: bool = False, **extra) -> dict:
    payload = {
        "id": notification_id,
        "type": "new_answer",
        "message": f"Notification {notification_id}",
        "read": read,
        "read_at": "2026-01-15T10:00:00+00:00" if read else None,
        "created_at": "2026-01-15T09:00:00+00:00",
        "related_question_id": 10,
    }
    payload.update(extra)
    return payload


class FakeChannel:
    """Stands in for NotificationChannel; the test pushes events by hand."""

    def __init__(self):
        self.listeners = []
        self.opened = False
        self.closed = False

    def subscribe(self, listener):
        self.listeners.append(listener)

        def unsubscribe():
            if listener in self.listeners:
                self.listeners.remove(listener)

        return unsubscribe

    def open(self):
        self.opened = True

    def close(self):
        self.closed = True
        self.listeners.clear()

    async def wait_closed(self):
        return None

    def emit(self, event):
        for listener in list(self.listeners):
            listener(event)
