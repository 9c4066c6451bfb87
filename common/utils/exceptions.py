"""
Client-side exceptions with error codes.

Mirrors the server's error envelope so callers can branch on a stable
machine-readable code instead of parsing messages.

Example:
    from common.utils import NotFoundError, raise_for_response

    response = await client.put(f"/notifications/{notification_id}/read")
    raise_for_response(response)  # raises NotFoundError on 404
"""

from typing import Optional, Any

import httpx


class NotificationClientError(Exception):
    """
    Base client exception with error code support.

    Provides a consistent error shape across the notification client.
    """

    default_code = "CLIENT_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Any] = None,
    ):
        """
        Create a client exception.

        Args:
            message: Human-readable error message
            code: Machine-readable error code
            status_code: HTTP status code, when the server answered
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.status_code = status_code
        self.details = details

    def to_dict(self) -> dict:
        """Serialize for logs and error fields."""
        error = {"message": self.message, "code": self.code}

        if self.status_code is not None:
            error["statusCode"] = self.status_code

        if self.details is not None:
            error["details"] = self.details

        return error


class RequestTimeoutError(NotificationClientError):
    """Request exceeded its timeout - the outcome on the server is unknown."""

    default_code = "REQUEST_TIMEOUT"


class TransportError(NotificationClientError):
    """Request could not be delivered (DNS, refused connection, reset)."""

    default_code = "NETWORK_ERROR"


class APIResponseError(NotificationClientError):
    """Server answered with a non-success status."""

    default_code = "API_ERROR"


class BadRequestError(APIResponseError):
    """400 Bad Request - Invalid input or malformed request."""

    default_code = "BAD_REQUEST"


class UnauthorizedError(APIResponseError):
    """401 Unauthorized - Missing or invalid credential."""

    default_code = "UNAUTHORIZED"


class ForbiddenError(APIResponseError):
    """403 Forbidden - Valid credential but insufficient permissions."""

    default_code = "FORBIDDEN"


class NotFoundError(APIResponseError):
    """404 Not Found - Resource doesn't exist."""

    default_code = "NOT_FOUND"


class ServerError(APIResponseError):
    """5xx - Unexpected server error."""

    default_code = "SERVER_ERROR"


class MalformedEventError(NotificationClientError):
    """Stream event payload could not be decoded."""

    default_code = "MALFORMED_EVENT"


class StreamFailedError(NotificationClientError):
    """Push stream gave up reconnecting."""

    default_code = "STREAM_FAILED"


_STATUS_ERRORS = {
    400: BadRequestError,
    401: UnauthorizedError,
    403: ForbiddenError,
    404: NotFoundError,
}


def _extract_error(response: httpx.Response) -> tuple:
    """Pull (message, code) out of a JSON error body, tolerating anything."""
    try:
        body = response.json()
    except ValueError:
        return None, None

    if not isinstance(body, dict):
        return None, None

    error = body.get("error")
    if isinstance(error, dict):
        return error.get("message"), error.get("code")

    detail = body.get("detail")
    if isinstance(detail, dict):
        return detail.get("message"), detail.get("code")
    if isinstance(detail, str):
        return detail, None

    return body.get("message") or error, body.get("code")


def raise_for_response(response: httpx.Response, fallback_message: str = "Request failed") -> None:
    """
    Raise the matching APIResponseError for a non-2xx response.

    Args:
        response: Completed httpx response
        fallback_message: Message used when the body carries none

    Raises:
        APIResponseError: Subclass chosen by status code
    """
    if response.is_success:
        return

    message, code = _extract_error(response)
    status = response.status_code

    if status >= 500:
        error_cls = ServerError
    else:
        error_cls = _STATUS_ERRORS.get(status, APIResponseError)

    raise error_cls(
        message=message or f"{fallback_message} (HTTP {status})",
        code=code,
        status_code=status,
    )
