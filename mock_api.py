"""
Forum Notifications Mock API Server

A FastAPI mock server that implements the notification wire contract
(REST endpoints plus the server-sent-events stream) over in-memory data,
for client development and testing without the real backend.

Run with: uvicorn mock_api:app --port 5002 --reload
"""

import asyncio
import json
import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from fastapi import FastAPI, Header, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from common.utils.responses import error_response
from forum_notifications.config import settings

logger = logging.getLogger(__name__)


# =============================================================================
# APP SETUP
# =============================================================================

app = FastAPI(
    title="Forum Notifications Mock API",
    description="Mock notification server for client development",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Cache-Control"],
)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    if isinstance(exc.detail, dict):
        body = error_response(exc.detail.get("message", "Error"), code=exc.detail.get("code"))
    else:
        body = error_response(str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content=body, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in error["loc"][1:]), "message": error["msg"]}
        for error in exc.errors()
    ]
    body = error_response("Invalid request", code="VALIDATION_ERROR", errors=errors)
    return JSONResponse(status_code=400, content=body)


# =============================================================================
# MOCK TOKEN STORE
# =============================================================================

mock_tokens: Dict[str, dict] = {}

MOCK_USERS = {
    "user@example.com": {"id": 1, "email": "user@example.com", "username": "jdoe"},
    "admin@example.com": {"id": 2, "email": "admin@example.com", "username": "admin"},
}


def generate_token() -> str:
    return f"mock_token_{secrets.token_hex(16)}"


def get_user_from_token(token: Optional[str]) -> Optional[dict]:
    if not token:
        return None
    return mock_tokens.get(token)


def require_auth(authorization: Optional[str]) -> dict:
    token = authorization.replace("Bearer ", "") if authorization else None
    user = get_user_from_token(token)
    if not user:
        raise HTTPException(
            status_code=401,
            detail={"message": "Unauthorized", "code": "UNAUTHORIZED"},
        )
    return user


# =============================================================================
# MOCK NOTIFICATION STORE
# =============================================================================

class MockNotificationStore:
    """In-memory notifications keyed by user, newest first."""

    def __init__(self):
        self._by_user: Dict[int, List[dict]] = {}
        self._next_id = 1

    def reset(self) -> None:
        self._by_user.clear()
        self._next_id = 1

    def create(
        self,
        user_id: int,
        message: str,
        notification_type: str = "new_answer",
        question_title: Optional[str] = None,
        related_question_id: Optional[int] = None,
        related_answer_id: Optional[int] = None,
        related_comment_id: Optional[int] = None,
        question_slug: Optional[str] = None,
    ) -> dict:
        notification = {
            "id": self._next_id,
            "user_id": user_id,
            "type": notification_type,
            "message": message,
            "question_title": question_title,
            "related_question_id": related_question_id,
            "related_answer_id": related_answer_id,
            "related_comment_id": related_comment_id,
            "question_slug": question_slug,
            "read": False,
            "read_at": None,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        self._next_id += 1
        self._by_user.setdefault(user_id, []).insert(0, notification)
        return notification

    def list(self, user_id: int, unread_only: bool, limit: int, offset: int) -> List[dict]:
        items = self._by_user.get(user_id, [])
        if unread_only:
            items = [n for n in items if not n["read"]]
        return items[offset:offset + limit]

    def unread_count(self, user_id: int) -> int:
        return sum(1 for n in self._by_user.get(user_id, []) if not n["read"])

    def get(self, user_id: int, notification_id: int) -> Optional[dict]:
        for notification in self._by_user.get(user_id, []):
            if notification["id"] == notification_id:
                return notification
        return None

    def mark_read(self, user_id: int, notification_id: int) -> Optional[dict]:
        notification = self.get(user_id, notification_id)
        if notification and not notification["read"]:
            notification["read"] = True
            notification["read_at"] = datetime.now(timezone.utc).isoformat()
        return notification

    def mark_all_read(self, user_id: int) -> int:
        now = datetime.now(timezone.utc).isoformat()
        count = 0
        for notification in self._by_user.get(user_id, []):
            if not notification["read"]:
                notification["read"] = True
                notification["read_at"] = now
                count += 1
        return count

    def delete(self, user_id: int, notification_id: int) -> bool:
        notification = self.get(user_id, notification_id)
        if not notification:
            return False
        self._by_user[user_id].remove(notification)
        return True


notification_store = MockNotificationStore()


def seed_notifications(user_id: int) -> None:
    """Give a freshly logged-in mock user something to look at."""
    if notification_store.list(user_id, False, 1, 0):
        return

    notification_store.create(
        user_id,
        "Someone answered your question",
        question_title="How do I reset a Python virtualenv?",
        related_question_id=10,
        related_answer_id=101,
        question_slug="how-do-i-reset-a-python-virtualenv",
    )
    notification_store.create(
        user_id,
        "New comment on your answer",
        notification_type="new_comment",
        question_title="Async generators and cancellation",
        related_question_id=11,
        related_comment_id=202,
        question_slug="async-generators-and-cancellation",
    )


# =============================================================================
# SSE CONNECTIONS
# =============================================================================

def format_sse(event: Optional[str], data: Any) -> str:
    """Frame one server-sent event."""
    frame = f"event: {event}\n" if event else ""
    return f"{frame}data: {json.dumps(data)}\n\n"


class ConnectionRegistry:
    """Open stream queues per user; broadcast fans out to all of them."""

    def __init__(self):
        self._connections: Dict[int, Set[asyncio.Queue]] = {}

    def register(self, user_id: int) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._connections.setdefault(user_id, set()).add(queue)
        logger.debug(f"SSE connection registered for user {user_id} ({self.count(user_id)} open)")
        return queue

    def unregister(self, user_id: int, queue: asyncio.Queue) -> None:
        connections = self._connections.get(user_id)
        if not connections:
            return
        connections.discard(queue)
        if not connections:
            del self._connections[user_id]
        logger.debug(f"SSE connection closed for user {user_id} ({self.count(user_id)} remaining)")

    def broadcast(self, user_id: int, event: str, data: Any) -> int:
        connections = self._connections.get(user_id, set())
        message = format_sse(event, data)
        for queue in connections:
            queue.put_nowait(message)
        return len(connections)

    def count(self, user_id: int) -> int:
        return len(self._connections.get(user_id, ()))

    def total(self) -> int:
        return sum(len(c) for c in self._connections.values())


connections = ConnectionRegistry()


# =============================================================================
# REQUEST MODELS
# =============================================================================


class LoginRequest(BaseModel):
    email: str
    password: str


class CreateNotificationRequest(BaseModel):
    message: str
    type: str = "new_answer"
    question_title: Optional[str] = None
    related_question_id: Optional[int] = None
    related_answer_id: Optional[int] = None
    related_comment_id: Optional[int] = None
    question_slug: Optional[str] = None


# =============================================================================
# HEALTH CHECK
# =============================================================================


@app.get("/health")
async def health_check():
    return {
        "status": "ok",
        "environment": settings.ENVIRONMENT,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "streams": connections.total(),
    }


# =============================================================================
# AUTH
# =============================================================================


@app.post("/api/auth/login")
async def login(request: LoginRequest):
    user = MOCK_USERS.get(request.email)
    if not user or not request.password:
        raise HTTPException(
            status_code=401,
            detail={"message": "Invalid email or password", "code": "INVALID_CREDENTIALS"},
        )

    token = generate_token()
    mock_tokens[token] = user
    seed_notifications(user["id"])
    return {"token": token, "user": user}


# =============================================================================
# NOTIFICATIONS
# =============================================================================


@app.get("/api/notifications")
async def get_notifications(
    authorization: Optional[str] = Header(None),
    unreadOnly: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
):
    user = require_auth(authorization)
    return {
        "notifications": notification_store.list(user["id"], unreadOnly, limit, offset),
        "unreadCount": notification_store.unread_count(user["id"]),
    }


@app.get("/api/notifications/unread-count")
async def get_unread_count(authorization: Optional[str] = Header(None)):
    user = require_auth(authorization)
    return {"count": notification_store.unread_count(user["id"])}


@app.post("/api/notifications", status_code=201)
async def create_notification(
    request: CreateNotificationRequest,
    authorization: Optional[str] = Header(None),
):
    """Dev helper: create a notification for the current user and push it."""
    user = require_auth(authorization)
    notification = notification_store.create(
        user["id"],
        request.message,
        notification_type=request.type,
        question_title=request.question_title,
        related_question_id=request.related_question_id,
        related_answer_id=request.related_answer_id,
        related_comment_id=request.related_comment_id,
        question_slug=request.question_slug,
    )

    connections.broadcast(user["id"], "new_notification", notification)
    connections.broadcast(user["id"], "unread_count", {"count": notification_store.unread_count(user["id"])})
    return notification


@app.put("/api/notifications/read-all")
async def mark_all_as_read(authorization: Optional[str] = Header(None)):
    user = require_auth(authorization)
    count = notification_store.mark_all_read(user["id"])
    connections.broadcast(user["id"], "unread_count", {"count": 0})
    return {"message": "All notifications marked as read", "count": count}


@app.put("/api/notifications/{notification_id}/read")
async def mark_as_read(notification_id: int, authorization: Optional[str] = Header(None)):
    user = require_auth(authorization)
    notification = notification_store.mark_read(user["id"], notification_id)
    if not notification:
        raise HTTPException(
            status_code=404,
            detail={"message": "Notification not found", "code": "NOTIFICATION_NOT_FOUND"},
        )

    connections.broadcast(user["id"], "unread_count", {"count": notification_store.unread_count(user["id"])})
    return notification


@app.delete("/api/notifications/{notification_id}")
async def delete_notification(notification_id: int, authorization: Optional[str] = Header(None)):
    user = require_auth(authorization)
    if not notification_store.delete(user["id"], notification_id):
        raise HTTPException(
            status_code=404,
            detail={"message": "Notification not found", "code": "NOTIFICATION_NOT_FOUND"},
        )

    connections.broadcast(user["id"], "notification_deleted", {"notificationId": notification_id})
    return {"message": "Notification deleted"}


@app.get("/api/notifications/stream")
async def notification_stream(token: Optional[str] = Query(default=None)):
    # EventSource cannot send headers, so the credential rides in the query string
    user = get_user_from_token(token)
    if not user:
        raise HTTPException(
            status_code=401,
            detail={"message": "Unauthorized", "code": "UNAUTHORIZED"},
        )

    user_id = user["id"]

    async def generate_stream():
        queue = connections.register(user_id)
        try:
            yield ": connected\n\n"
            yield format_sse("connected", {
                "userId": user_id,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            })
            yield format_sse("unread_count", {"count": notification_store.unread_count(user_id)})

            while True:
                try:
                    message = await asyncio.wait_for(queue.get(), timeout=settings.MOCK_HEARTBEAT_SECONDS)
                except asyncio.TimeoutError:
                    yield ": heartbeat\n\n"
                    continue
                yield message
        finally:
            connections.unregister(user_id, queue)

    return StreamingResponse(
        generate_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


# =============================================================================
# MAIN
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run("mock_api:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
