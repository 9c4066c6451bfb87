"""
Notification watcher.

Opens a notification session against API_BASE_URL and logs every change
to the unread count and the list until interrupted. Handy for checking a
backend (or mock_api) end to end.

Usage:
    python -m jobs.watch_notifications --token mock_token_abc123

    Against the mock server:
        uvicorn mock_api:app --port 5002
        python -m jobs.watch_notifications --email user@example.com --password x
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

import httpx

from forum_notifications.config import settings
from forum_notifications.dependencies import create_notification_session
from forum_notifications.schemas.notifications import NotificationState

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


class NotificationWatcher:
    """Logs session state transitions."""

    def __init__(self):
        self._last_count: Optional[int] = None
        self._last_ids: tuple = ()

    def __call__(self, state: NotificationState) -> None:
        if state.unread_count != self._last_count:
            logger.info(f"Unread count: {state.unread_count}")
            self._last_count = state.unread_count

        ids = tuple(n.id for n in state.notifications)
        if ids != self._last_ids:
            logger.info(f"Notifications: {len(ids)} cached")
            for notification in state.notifications:
                marker = " " if notification.read else "*"
                logger.info(f"  {marker} #{notification.id} {notification.message}")
            self._last_ids = ids

        if state.error:
            logger.warning(f"Fetch error: {state.error}")


async def login(email: str, password: str) -> str:
    """Obtain a token from the mock server's login endpoint."""
    async with httpx.AsyncClient() as client:
        response = await client.post(
            f"{settings.API_BASE_URL.rstrip('/')}/auth/login",
            json={"email": email, "password": password},
            timeout=settings.REQUEST_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        return response.json()["token"]


async def main(argv: Optional[list] = None) -> int:
    """Main entry point for the notification watcher."""
    parser = argparse.ArgumentParser(description="Watch live notifications")
    parser.add_argument("--token", help="Bearer token for the notification API")
    parser.add_argument("--email", help="Mock server login email")
    parser.add_argument("--password", help="Mock server login password")
    parser.add_argument("--polling", action="store_true", help="Skip the push stream")
    args = parser.parse_args(argv)

    token = args.token
    if not token and args.email:
        token = await login(args.email, args.password or "")
    if not token:
        parser.error("either --token or --email is required")

    config = settings.model_copy(update={"PUSH_ENABLED": not args.polling})
    config.validate_required()

    session = create_notification_session(lambda: token, settings=config)
    session.subscribe(NotificationWatcher())

    try:
        await session.start()
        logger.info(f"Watching notifications ({session.mode}); Ctrl+C to stop")
        await asyncio.Event().wait()
    finally:
        await session.aclose()

    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(0)
