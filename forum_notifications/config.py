"""
Forum notification client settings.

Extends the base settings with notification-specific configuration.
"""

from common.config import BaseAppSettings


class Settings(BaseAppSettings):
    """Notification client settings."""

    # ==========================================================================
    # API
    # ==========================================================================
    API_BASE_URL: str = "http://localhost:5002/api"
    NOTIFICATIONS_PATH: str = "/notifications"

    # Page size for list fetches
    FETCH_LIMIT: int = 50

    # Bound on read-related calls (mark-as-read, unread count)
    CONFIRMATION_TIMEOUT_SECONDS: float = 10.0

    # Bound on every other REST call
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    # ==========================================================================
    # Push Stream
    # ==========================================================================
    PUSH_ENABLED: bool = True

    # Attempt n waits n * RECONNECT_DELAY_SECONDS (2s, 4s, 6s)
    MAX_RECONNECT_ATTEMPTS: int = 3
    RECONNECT_DELAY_SECONDS: float = 2.0

    # Delay of the stream's own retry after an open connection drops
    STREAM_RETRY_SECONDS: float = 3.0

    # Server heartbeats every 30s; longer silence means a dead connection
    STREAM_READ_TIMEOUT_SECONDS: float = 75.0

    # ==========================================================================
    # Polling Fallback
    # ==========================================================================
    POLL_INTERVAL_SECONDS: float = 30.0

    # ==========================================================================
    # Reconciliation
    # ==========================================================================
    # Lifetime of an optimistic update record
    PROTECTION_WINDOW_SECONDS: float = 30.0

    # Periodic full re-fetch; 0 disables it
    RECONCILE_INTERVAL_SECONDS: float = 300.0

    # ==========================================================================
    # Mock Server
    # ==========================================================================
    MOCK_HEARTBEAT_SECONDS: float = 30.0

    def notifications_url(self, suffix: str = "") -> str:
        """Absolute URL of a notification resource."""
        return f"{self.API_BASE_URL.rstrip('/')}{self.NOTIFICATIONS_PATH}{suffix}"

    def stream_url(self) -> str:
        """Absolute URL of the push stream."""
        return self.notifications_url("/stream")

    def collect_errors(self) -> list:
        errors = super().collect_errors()

        positive = {
            "FETCH_LIMIT": self.FETCH_LIMIT,
            "CONFIRMATION_TIMEOUT_SECONDS": self.CONFIRMATION_TIMEOUT_SECONDS,
            "REQUEST_TIMEOUT_SECONDS": self.REQUEST_TIMEOUT_SECONDS,
            "RECONNECT_DELAY_SECONDS": self.RECONNECT_DELAY_SECONDS,
            "STREAM_RETRY_SECONDS": self.STREAM_RETRY_SECONDS,
            "STREAM_READ_TIMEOUT_SECONDS": self.STREAM_READ_TIMEOUT_SECONDS,
            "POLL_INTERVAL_SECONDS": self.POLL_INTERVAL_SECONDS,
            "PROTECTION_WINDOW_SECONDS": self.PROTECTION_WINDOW_SECONDS,
            "MOCK_HEARTBEAT_SECONDS": self.MOCK_HEARTBEAT_SECONDS,
        }
        for name, value in positive.items():
            if value <= 0:
                errors.append(f"{name} must be positive")

        if self.MAX_RECONNECT_ATTEMPTS < 0:
            errors.append("MAX_RECONNECT_ATTEMPTS cannot be negative")

        if self.RECONCILE_INTERVAL_SECONDS < 0:
            errors.append("RECONCILE_INTERVAL_SECONDS cannot be negative")

        return errors


# Global settings instance
settings = Settings()
