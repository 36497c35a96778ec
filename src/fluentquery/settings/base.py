from typing import Any

from pydantic_settings import BaseSettings, SettingsConfigDict


class FluentQueryBaseSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FLUENTQUERY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__"
    )

    def model_post_init(self, __context: Any) -> None:
        """Post initialization hook for additional setup.

        Subclasses override this and call super() to add cross-field checks
        that Pydantic validators cannot express.
        """
        super().model_post_init(__context)
