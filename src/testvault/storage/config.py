"""Configuration settings for testvault."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class LoggingSettings(BaseSettings):
    """Logging settings, usable without any database configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: str = "INFO"
    log_json_format: bool = False


class Settings(LoggingSettings):
    """Settings loaded from environment variables or a ``.env`` file."""

    # Database
    database_url: str
    db_pool_size: int = 10
    db_pool_timeout: float = 30.0
    debug: bool = False

    # Tenancy columns written on every row
    org_id: str = "1"
    app_id: str = "1"

    # Recorder
    test_environment: str = "unknown"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    # pydantic-settings loads required fields from env vars at runtime
    return Settings()  # type: ignore[call-arg]
