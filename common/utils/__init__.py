"""
Utilities module - Common helpers for error responses and client exceptions.
"""

from common.utils.responses import error_response
from common.utils.exceptions import (
    NotificationClientError,
    RequestTimeoutError,
    TransportError,
    APIResponseError,
    BadRequestError,
    UnauthorizedError,
    ForbiddenError,
    NotFoundError,
    ServerError,
    MalformedEventError,
    StreamFailedError,
    raise_for_response,
)

__all__ = [
    "error_response",
    "NotificationClientError",
    "RequestTimeoutError",
    "TransportError",
    "APIResponseError",
    "BadRequestError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "ServerError",
    "MalformedEventError",
    "StreamFailedError",
    "raise_for_response",
]
