"""
REST client for the notification endpoints.

Every call fetches a fresh credential from the token provider and sends it
as a Bearer header. Read-related calls are bounded by the confirmation
timeout; expiry raises RequestTimeoutError, the "ambiguous outcome" case.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from common.utils.exceptions import (
    RequestTimeoutError,
    TransportError,
    UnauthorizedError,
    raise_for_response,
)
from forum_notifications.config import Settings, settings as default_settings
from forum_notifications.schemas.notifications import (
    MarkAllReadResponse,
    Notification,
    NotificationsPage,
    UnreadCountResponse,
)
from forum_notifications.services.stream.channel import TokenProvider, resolve_token

logger = logging.getLogger(__name__)


class NotificationAPIClient:
    """Thin async wrapper over the notification REST endpoints."""

    def __init__(
        self,
        token_provider: TokenProvider,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize NotificationAPIClient.

        Args:
            token_provider: Returns the current credential
            settings: Client settings (defaults to the global instance)
            http_client: Shared client; one is created and owned if omitted
        """
        self._token_provider = token_provider
        self._settings = settings or default_settings
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient()

    @property
    def http_client(self) -> httpx.AsyncClient:
        return self._client

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        suffix: str,
        timeout: float,
        failure_message: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        token = await resolve_token(self._token_provider)
        if not token:
            raise UnauthorizedError(message="No token available", code="NO_TOKEN")

        try:
            response = await self._client.request(
                method,
                self._settings.notifications_url(suffix),
                params=params,
                headers={"Authorization": f"Bearer {token}"},
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning(f"{method} {suffix or '/'} timed out after {timeout:.0f}s")
            raise RequestTimeoutError(
                message=f"Request timeout - {failure_message.lower()} took too long"
            ) from e
        except httpx.RequestError as e:
            logger.error(f"{method} {suffix or '/'} request error: {e}")
            raise TransportError(message=f"{failure_message}: {e}") from e

        raise_for_response(response, failure_message)

        try:
            return response.json()
        except ValueError:
            return {}

    # =========================================================================
    # Endpoints
    # =========================================================================

    async def get_notifications(
        self,
        unread_only: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> NotificationsPage:
        """
        Fetch a page of notifications with the server's unread count.

        Args:
            unread_only: Only return unread notifications
            limit: Page size (defaults to FETCH_LIMIT)
            offset: Number to skip for pagination

        Returns:
            NotificationsPage
        """
        params: Dict[str, Any] = {"limit": limit or self._settings.FETCH_LIMIT}
        if unread_only:
            params["unreadOnly"] = "true"
        if offset:
            params["offset"] = offset

        body = await self._request(
            "GET",
            "",
            self._settings.REQUEST_TIMEOUT_SECONDS,
            "Failed to fetch notifications",
            params=params,
        )
        return NotificationsPage.model_validate(body)

    async def get_unread_count(self) -> int:
        body = await self._request(
            "GET",
            "/unread-count",
            self._settings.CONFIRMATION_TIMEOUT_SECONDS,
            "Failed to fetch unread count",
        )
        return UnreadCountResponse.model_validate(body).count

    async def mark_as_read(self, notification_id: int) -> Notification:
        """
        Confirm a read on the server.

        Raises:
            RequestTimeoutError: No answer within CONFIRMATION_TIMEOUT_SECONDS
            NotFoundError: Notification unknown or not owned by the user
        """
        body = await self._request(
            "PUT",
            f"/{notification_id}/read",
            self._settings.CONFIRMATION_TIMEOUT_SECONDS,
            "Failed to mark notification as read",
        )
        return Notification.model_validate(body)

    async def mark_all_as_read(self) -> MarkAllReadResponse:
        body = await self._request(
            "PUT",
            "/read-all",
            self._settings.REQUEST_TIMEOUT_SECONDS,
            "Failed to mark all notifications as read",
        )
        return MarkAllReadResponse.model_validate(body)

    async def delete_notification(self, notification_id: int) -> None:
        await self._request(
            "DELETE",
            f"/{notification_id}",
            self._settings.REQUEST_TIMEOUT_SECONDS,
            "Failed to delete notification",
        )
