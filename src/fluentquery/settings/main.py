from typing import Optional

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from .base import FluentQueryBaseSettings
from .database import DatabaseSettings
from .log import LoggingSettings
from .query import QuerySettings


class _Settings(FluentQueryBaseSettings):

    model_config = SettingsConfigDict(
        env_prefix="FLUENTQUERY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__"
    )

    database: DatabaseSettings = Field(
        default_factory=DatabaseSettings,
        description="Connection, dialect and table prefix"
    )
    query: QuerySettings = Field(
        default_factory=QuerySettings,
        description="Batch insert and pagination defaults"
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Log level and output format"
    )


# Singleton instance
_settings: Optional[_Settings] = None


def get_settings(force_reload: bool = False) -> _Settings:
    """Get the singleton settings instance for the application.

    Settings are loaded from environment variables (``FLUENTQUERY_*``) and an
    optional ``.env`` file on first access.

    Args:
        force_reload: If True, creates a new Settings instance even if
                     one already exists. Useful for testing or when
                     environment variables have changed.

    Returns:
        Settings: The singleton Settings instance

    Example:
        ```python
        settings = get_settings()
        assert settings is get_settings()

        # Pick up environment changes
        new_settings = get_settings(force_reload=True)
        assert new_settings is not settings
        ```
    """
    global _settings

    if _settings is None or force_reload:
        _settings = _Settings()

    return _settings


def _reload_settings() -> _Settings:
    """Force reload of settings.

    This is primarily for testing purposes where you need to reset
    the singleton instance.
    """
    global _settings
    _settings = None
    return get_settings(force_reload=True)
