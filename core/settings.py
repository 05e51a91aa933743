"""
Application settings and configuration management using Pydantic Settings.
"""
from typing import List, Optional

import pytz
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application Settings
    app_name: str = Field(default="Salon Booking", description="Application name")
    app_env: str = Field(default="development", description="Environment (development, staging, production)")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level")
    api_v1_prefix: str = Field(default="/api/v1", description="Prefix for versioned routes")

    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./salon_booking.db",
        description="Database connection URL"
    )
    db_pool_size: int = Field(default=5, ge=1, description="Connection pool size")
    db_max_overflow: int = Field(default=10, ge=0, description="Connections allowed beyond the pool size")
    db_pool_timeout: int = Field(default=30, ge=1, description="Seconds to wait for a pooled connection")
    db_pool_recycle: int = Field(default=3600, description="Recycle connections after this many seconds")
    db_echo: bool = Field(default=False, description="Log every SQL statement")

    # Business Configuration
    business_timezone: str = Field(default="America/Mexico_City", description="Business reference timezone")
    temp_email_domain: str = Field(
        default="booking.temp",
        description="Domain for synthetic client emails when none is given"
    )

    # Google Calendar Configuration
    google_calendar_api_url: str = Field(
        default="https://www.googleapis.com/calendar/v3",
        description="Google Calendar REST API base URL"
    )
    google_calendar_access_token: Optional[str] = Field(default=None, description="OAuth bearer token")
    google_calendar_id: str = Field(default="primary", description="Default target calendar")
    google_calendar_timeout_seconds: float = Field(default=10.0, gt=0, description="HTTP timeout for sync calls")

    # Payment confirmation webhook
    finalize_webhook_secret: Optional[str] = Field(
        default=None,
        description="Shared secret expected in X-Webhook-Secret on finalization callbacks"
    )

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, ge=1, le=65535, description="API port")
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:8000",
        description="Allowed CORS origins (comma-separated)"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the allowed values."""
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in allowed_levels:
            raise ValueError(f"log_level must be one of {allowed_levels}")
        return v_upper

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate environment is one of the allowed values."""
        allowed_envs = ["development", "staging", "production", "test"]
        v_lower = v.lower()
        if v_lower not in allowed_envs:
            raise ValueError(f"app_env must be one of {allowed_envs}")
        return v_lower

    @field_validator("business_timezone")
    @classmethod
    def validate_business_timezone(cls, v: str) -> str:
        """Validate the timezone is a known IANA name."""
        try:
            pytz.timezone(v)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"business_timezone is not a known timezone: {v}")
        return v

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string to list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def google_calendar_enabled(self) -> bool:
        """Outbound calendar sync runs only with a token configured."""
        return bool(self.google_calendar_access_token)


# Global settings instance
settings = Settings()
