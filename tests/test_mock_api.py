"""Tests for the mock notification server."""

import json

import pytest
from fastapi.testclient import TestClient

import mock_api
from mock_api import ConnectionRegistry, app, format_sse, notification_store


@pytest.fixture(autouse=True)
def reset_mock_state():
    notification_store.reset()
    mock_api.mock_tokens.clear()
    yield
    notification_store.reset()
    mock_api.mock_tokens.clear()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def auth_headers(client):
    response = client.post("/api/auth/login", json={"email": "user@example.com", "password": "pw"})
    return {"Authorization": f"Bearer {response.json()['token']}"}


def _parse_frames(chunks):
    """Split streamed chunks into (event, data) pairs, skipping comments."""
    events = []
    for chunk in chunks:
        name, data = None, None
        for line in chunk.strip().split("\n"):
            if line.startswith("event: "):
                name = line[len("event: "):]
            elif line.startswith("data: "):
                data = json.loads(line[len("data: "):])
        if data is not None:
            events.append((name, data))
    return events


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

class TestAuth:

    def test_login_returns_token_and_seeds(self, client):
        response = client.post("/api/auth/login", json={"email": "user@example.com", "password": "pw"})

        assert response.status_code == 200
        assert response.json()["token"].startswith("mock_token_")
        assert notification_store.unread_count(1) == 2

    def test_login_twice_does_not_reseed(self, client):
        client.post("/api/auth/login", json={"email": "user@example.com", "password": "pw"})
        client.post("/api/auth/login", json={"email": "user@example.com", "password": "pw"})

        assert notification_store.unread_count(1) == 2

    def test_unknown_user_rejected(self, client):
        response = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "pw"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_CREDENTIALS"

    def test_endpoints_require_token(self, client):
        response = client.get("/api/notifications")

        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "error": {"message": "Unauthorized", "code": "UNAUTHORIZED"},
        }


# ---------------------------------------------------------------------------
# REST endpoints
# ---------------------------------------------------------------------------

class TestNotificationEndpoints:

    def test_list_newest_first_with_count(self, client, auth_headers):
        body = client.get("/api/notifications", headers=auth_headers).json()

        assert body["unreadCount"] == 2
        assert [n["id"] for n in body["notifications"]] == [2, 1]

    def test_list_unread_only_and_paging(self, client, auth_headers):
        client.put("/api/notifications/1/read", headers=auth_headers)

        unread = client.get("/api/notifications", params={"unreadOnly": "true"}, headers=auth_headers).json()
        paged = client.get("/api/notifications", params={"limit": 1, "offset": 1}, headers=auth_headers).json()

        assert [n["id"] for n in unread["notifications"]] == [2]
        assert [n["id"] for n in paged["notifications"]] == [1]

    def test_unread_count(self, client, auth_headers):
        assert client.get("/api/notifications/unread-count", headers=auth_headers).json() == {"count": 2}

    def test_mark_as_read(self, client, auth_headers):
        response = client.put("/api/notifications/2/read", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["read"] is True
        assert response.json()["read_at"] is not None
        assert notification_store.unread_count(1) == 1

    def test_mark_unknown_as_read_is_404(self, client, auth_headers):
        response = client.put("/api/notifications/999/read", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOTIFICATION_NOT_FOUND"

    def test_mark_all_as_read(self, client, auth_headers):
        body = client.put("/api/notifications/read-all", headers=auth_headers).json()

        assert body["count"] == 2
        assert notification_store.unread_count(1) == 0

    def test_delete(self, client, auth_headers):
        assert client.delete("/api/notifications/1", headers=auth_headers).status_code == 200
        assert client.delete("/api/notifications/1", headers=auth_headers).status_code == 404

    def test_create_is_scoped_to_user(self, client, auth_headers):
        response = client.post("/api/notifications", json={"message": "Ping"}, headers=auth_headers)

        assert response.status_code == 201
        assert response.json()["id"] == 3
        assert notification_store.unread_count(1) == 3
        assert notification_store.unread_count(2) == 0

    def test_invalid_query_uses_error_envelope(self, client, auth_headers):
        response = client.get("/api/notifications", params={"limit": 0}, headers=auth_headers)

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["errors"][0]["field"] == "limit"

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "ok"


# ---------------------------------------------------------------------------
# Stream
# ---------------------------------------------------------------------------

class TestStream:

    def test_format_sse(self):
        assert format_sse("unread_count", {"count": 1}) == 'event: unread_count\ndata: {"count": 1}\n\n'
        assert format_sse(None, {"a": 1}) == 'data: {"a": 1}\n\n'

    def test_registry_broadcasts_to_every_connection(self):
        registry = ConnectionRegistry()
        first = registry.register(1)
        second = registry.register(1)
        other = registry.register(2)

        delivered = registry.broadcast(1, "notification_deleted", {"notificationId": 4})

        assert delivered == 2
        assert first.get_nowait() == second.get_nowait()
        assert other.empty()

    def test_registry_unregister(self):
        registry = ConnectionRegistry()
        queue = registry.register(1)

        registry.unregister(1, queue)
        registry.unregister(1, queue)

        assert registry.count(1) == 0
        assert registry.total() == 0
        assert registry.broadcast(1, "unread_count", {"count": 0}) == 0

    def test_stream_rejects_bad_token(self, client):
        response = client.get("/api/notifications/stream", params={"token": "bogus"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_stream_opens_with_connected_and_count(self, client, auth_headers):
        token = auth_headers["Authorization"].replace("Bearer ", "")

        response = await mock_api.notification_stream(token=token)
        assert response.media_type == "text/event-stream"
        assert response.headers["x-accel-buffering"] == "no"

        stream = response.body_iterator
        chunks = [await stream.__anext__() for _ in range(3)]

        assert chunks[0] == ": connected\n\n"
        events = _parse_frames(chunks)
        assert events[0][0] == "connected"
        assert events[0][1]["userId"] == 1
        assert events[1] == ("unread_count", {"count": 2})

        mock_api.connections.broadcast(1, "notification_deleted", {"notificationId": 1})
        pushed = await stream.__anext__()
        assert _parse_frames([pushed]) == [("notification_deleted", {"notificationId": 1})]

        await stream.aclose()
        assert mock_api.connections.count(1) == 0

    @pytest.mark.asyncio
    async def test_stream_registers_only_once_iterated(self, client, auth_headers):
        token = auth_headers["Authorization"].replace("Bearer ", "")

        abandoned = await mock_api.notification_stream(token=token)
        assert mock_api.connections.count(1) == 0

        response = await mock_api.notification_stream(token=token)
        stream = response.body_iterator
        await stream.__anext__()
        assert mock_api.connections.count(1) == 1

        await stream.aclose()
        assert mock_api.connections.count(1) == 0
        assert abandoned.media_type == "text/event-stream"

    @pytest.mark.asyncio
    async def test_stream_sends_heartbeat_comments(self, client, auth_headers, monkeypatch):
        monkeypatch.setattr(mock_api.settings, "MOCK_HEARTBEAT_SECONDS", 0.01)
        token = auth_headers["Authorization"].replace("Bearer ", "")

        response = await mock_api.notification_stream(token=token)
        stream = response.body_iterator
        for _ in range(3):
            await stream.__anext__()

        assert await stream.__anext__() == ": heartbeat\n\n"
        await stream.aclose()
