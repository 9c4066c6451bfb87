"""
Shared settings base for the notification client and the mock server.

Values come from environment variables (and an optional .env file), so a
deployment can point the client at another backend without code changes:

    API_BASE_URL=https://forum.example.com/api PUSH_ENABLED=false \
        python -m jobs.watch_notifications --token ...

Subclasses add their own fields and extend collect_errors().
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class BaseAppSettings(BaseSettings):
    """Options shared by every entry point: mock server binding, CORS and logging."""

    # ==========================================================================
    # Mock Server Binding
    # ==========================================================================
    HOST: str = "0.0.0.0"
    PORT: int = 5002
    DEBUG: bool = False  # uvicorn auto-reload for the mock server
    ENVIRONMENT: str = "development"

    # ==========================================================================
    # Logging
    # ==========================================================================
    LOG_LEVEL: str = "INFO"

    # ==========================================================================
    # CORS (mock server, for browser clients on another origin)
    # ==========================================================================
    CORS_ORIGINS: str = "*"  # Comma-separated origins or "*"
    CORS_ALLOW_CREDENTIALS: bool = True

    # ==========================================================================
    # Pydantic Settings Configuration
    # ==========================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow",
        case_sensitive=True,
    )

    def get_cors_origins(self) -> list:
        """Split CORS_ORIGINS into the list CORSMiddleware expects."""
        if self.CORS_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    def collect_errors(self) -> list:
        """
        Collect configuration problems.

        Returns:
            Human-readable problems; empty when the settings are usable
        """
        errors = []

        if not 0 < self.PORT < 65536:
            errors.append(f"PORT {self.PORT} is out of range")

        if self.LOG_LEVEL.upper() not in LOG_LEVELS:
            errors.append(f"LOG_LEVEL '{self.LOG_LEVEL}' is not a valid logging level")

        return errors

    def validate_required(self) -> None:
        """
        Fail fast on unusable settings.

        Raises:
            ValueError: Listing every problem found, one per line
        """
        errors = self.collect_errors()

        if errors:
            raise ValueError("Configuration errors:\n- " + "\n- ".join(errors))
