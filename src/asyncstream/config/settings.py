"""Environment-based configuration using pydantic-settings.

Provides type-safe, validated configuration from environment variables
with sensible defaults. Supports .env files and nested configuration.

Example:
    >>> from asyncstream.config import get_settings
    >>> settings = get_settings()
    >>> settings.logging.format
    'console'

    # Or with environment variables:
    # ASYNCSTREAM_DEBUG=true
    # ASYNCSTREAM_LOG_LEVEL=DEBUG
    # ASYNCSTREAM_LOG_FORMAT=json
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ASYNCSTREAM_LOG_",
        extra="ignore",
    )

    level: LogLevel = "INFO"
    format: Literal["console", "json", "none"] = "console"

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, v: str) -> str:
        """Accept lowercase level names."""
        return v.upper() if isinstance(v, str) else v


class StreamSettings(BaseSettings):
    """Root settings for asyncstream.

    Loads configuration from environment variables with ASYNCSTREAM_ prefix.
    Logging fields take effect only through ``configure_logging()``, which the
    library never calls on its own.

    Example environment variables:
        ASYNCSTREAM_DEBUG=true
        ASYNCSTREAM_LOG_LEVEL=WARNING
        ASYNCSTREAM_LOG_FORMAT=json
    """

    model_config = SettingsConfigDict(
        env_prefix="ASYNCSTREAM_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    debug: bool = Field(
        default=False,
        description="Log stage construction and terminal results once configure_logging() is called",
    )
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @computed_field
    @property
    def effective_log_level(self) -> LogLevel:
        """DEBUG when debug mode is on, otherwise the configured level."""
        return "DEBUG" if self.debug else self.logging.level


@lru_cache(maxsize=1)
def get_settings() -> StreamSettings:
    """Get the global settings instance (cached)."""
    return StreamSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing).

    After calling this, the next get_settings() call will
    reload configuration from environment.
    """
    get_settings.cache_clear()
