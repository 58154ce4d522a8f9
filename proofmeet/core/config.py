# proofmeet/core/config.py
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Global application configuration.

    Values are loaded from environment variables (or a local `.env` file)
    at runtime. Externally visible identifiers such as the verification base
    URL have no default: a missing value must surface at startup instead of
    being silently replaced by a guessed destination.
    """

    APP_NAME: str = "ProofMeet Compliance Service"
    APP_ENV: str = Field("local", description="Environment name: local/dev/stage/prod")
    LOG_LEVEL: str = Field("INFO", description="Root log level (DEBUG, INFO, WARNING, ...).")

    DB_URL: str = Field(
        "sqlite+aiosqlite:///./proofmeet.db",
        description="SQLAlchemy-compatible database URL",
    )

    VERIFICATION_BASE_URL: str | None = Field(
        default=None,
        description=(
            "Public base URL of the court card verification site. Cards embed "
            "'<base>/verify/<card id>'. Required for the service to start."
        ),
    )

    MINIMUM_ATTENDANCE_FRACTION: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description=(
            "Fraction of the planned meeting duration a participant must be "
            "active for the attendance to count as COMPLETED."
        ),
    )
    DEFAULT_PERIOD_DAYS: int = Field(
        default=7,
        ge=1,
        description="Compliance period length used when enrolling without one.",
    )

    VERIFICATION_AUDIT_INTERVAL_MINUTES: float = Field(
        default=60.0,
        ge=0,
        description=(
            "Minimum gap between VERIFIED audit events for one card. Lookups in "
            "between only bump the card's verification counter."
        ),
    )
    STALE_ATTENDANCE_GRACE_MINUTES: float = Field(
        default=15.0,
        ge=0,
        description=(
            "How long after a meeting's scheduled end an open attendance "
            "record is considered stale and closed automatically."
        ),
    )

    INTERNAL_API_KEY: str | None = Field(
        default=None,
        description="API key required for hitting /internal endpoints",
    )

    # --- Zoom Server-to-Server OAuth ---
    ZOOM_ACCOUNT_ID: str | None = None
    ZOOM_CLIENT_ID: str | None = None
    ZOOM_CLIENT_SECRET: str | None = None
    ZOOM_API_BASE_URL: str = Field(
        default="https://api.zoom.us/v2",
        description="Base URL of the Zoom REST API.",
    )
    ZOOM_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        gt=0,
        description="Upper bound for a single meeting-creation round trip.",
    )
    ZOOM_DEFAULT_TIMEZONE: str = Field(
        default="America/Los_Angeles",
        description="Timezone passed to Zoom for newly created meetings.",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached accessor for application settings.

    Using LRU cache ensures settings are read and validated only once,
    while still being easily importable across the app.
    """
    return Settings()
