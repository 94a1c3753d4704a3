"""
Application configuration settings
"""

from typing import List
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from leaderboard.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    # Application
    APP_NAME: str = "RevenueCat MRR Leaderboard"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Security
    ENCRYPTION_KEY: str = Field(..., min_length=1)  # master secret for stored API keys
    CRON_SECRET: str = Field(..., min_length=1)     # bearer token for the refresh trigger

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./leaderboard.db"
    DATABASE_ECHO: bool = False
    DATABASE_AUTO_CREATE: bool = True

    # CORS (comma separated)
    ALLOWED_HOSTS: str = "*"

    @property
    def cors_origins(self) -> List[str]:
        return [i.strip() for i in self.ALLOWED_HOSTS.split(",") if i.strip()]

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    # RevenueCat
    REVENUECAT_API_BASE_URL: str = "https://api.revenuecat.com/v2"
    REVENUECAT_TIMEOUT_SECONDS: float = 15.0

    # Metrics refresh
    REFRESH_MAX_CONCURRENCY: int = Field(default=4, ge=1)
    SCHEDULER_ENABLED: bool = True
    REFRESH_CRON_HOUR: int = Field(default=0, ge=0, le=23)  # midnight UTC
    REFRESH_CRON_MINUTE: int = Field(default=0, ge=0, le=59)

    # Registration rate limiting
    REGISTRATION_RATE_LIMIT: int = Field(default=3, ge=1)
    REGISTRATION_RATE_WINDOW_SECONDS: int = Field(default=60 * 60, ge=1)  # 1 hour


def load_settings(**overrides) -> Settings:
    """
    Resolve settings once at startup.

    Raises ConfigurationError naming every missing or invalid field, so a
    process without ENCRYPTION_KEY or CRON_SECRET refuses to start.
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        fields = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        raise ConfigurationError(
            f"Invalid or missing configuration: {', '.join(fields)}"
        ) from e
