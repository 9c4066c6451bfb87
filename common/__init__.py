"""
Common library for reusable infrastructure components.

This package provides generic modules that can be used across projects:

- config: Base settings class
- utils: Error responses and client exceptions
"""

from common.config import BaseAppSettings
from common.utils import (
    error_response,
    NotificationClientError,
    RequestTimeoutError,
    TransportError,
    APIResponseError,
    NotFoundError,
    raise_for_response,
)

__all__ = [
    # Config
    "BaseAppSettings",
    # Utils
    "error_response",
    "NotificationClientError",
    "RequestTimeoutError",
    "TransportError",
    "APIResponseError",
    "NotFoundError",
    "raise_for_response",
]
