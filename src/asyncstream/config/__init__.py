"""Configuration management using pydantic-settings."""

from .settings import LoggingSettings, StreamSettings, clear_settings_cache, get_settings

__all__ = [
    "LoggingSettings",
    "StreamSettings",
    "clear_settings_cache",
    "get_settings",
]
