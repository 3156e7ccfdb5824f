"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.config.operational_constants import (
    REFERRAL_REPAIR_BATCH_SIZE,
    REFERRAL_REPAIR_LOCK_TIMEOUT_SECONDS,
    REFERRAL_TASK_REPAIR_WINDOW_DAYS,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False

    # Redis (for Dramatiq and the repair lock)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    redis_db: int = 0

    # Application
    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"
    log_file: str | None = Field(
        default="logs/referrals.log",
        description="Rotating log file for workers and scripts (None disables)"
    )

    # Referral reconciliation
    referral_task_repair_window_days: int = Field(
        default=REFERRAL_TASK_REPAIR_WINDOW_DAYS,
        ge=1,
        description="Trailing window (days) of verified tasks scanned by repair"
    )
    referral_repair_batch_size: int = Field(
        default=REFERRAL_REPAIR_BATCH_SIZE,
        ge=1,
        le=10_000,
        description="Rows fetched per page while scanning historical events"
    )
    referral_repair_lock_timeout: int = Field(
        default=REFERRAL_REPAIR_LOCK_TIMEOUT_SECONDS,
        gt=0,
        description="Redis lock TTL (seconds) held by a repair sweep"
    )
    referral_repair_cron: str = Field(
        default="30 3 * * *",
        description="Crontab expression for the scheduled repair sweep (UTC)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL."""
        if not v.startswith(
            ('postgresql://', 'postgresql+asyncpg://', 'sqlite+aiosqlite://')
        ):
            raise ValueError(
                'DATABASE_URL must start with postgresql://, '
                'postgresql+asyncpg:// or sqlite+aiosqlite://'
            )
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize log level name."""
        level = v.upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f'Unknown log level: {v}')
        return level

    @property
    def async_database_url(self) -> str:
        """Database URL with the async driver."""
        if self.database_url.startswith('postgresql://'):
            return self.database_url.replace(
                'postgresql://', 'postgresql+asyncpg://', 1
            )
        return self.database_url


# Global settings instance
settings = Settings()
