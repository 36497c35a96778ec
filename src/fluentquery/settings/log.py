from pydantic import Field, field_validator

from .base import FluentQueryBaseSettings


class LoggingSettings(FluentQueryBaseSettings):

    log_level: str = Field(
        default="INFO",
        description="Base log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_json: bool = Field(
        default=True,
        description="Emit JSON lines instead of plain text"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level
