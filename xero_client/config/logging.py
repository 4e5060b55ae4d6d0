"""Logging configuration settings."""

from pydantic import BaseModel, Field, field_validator


class LoggingSettings(BaseModel):
    """Logging configuration for the client library."""

    level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    format: str = Field(
        default="console",
        description="Logging output format: 'console' for development, 'json' for production",
    )

    show_time: bool = Field(
        default=True,
        description="Whether to show timestamps in console logs",
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate and normalize the log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate the output format."""
        v = v.lower()
        if v not in ("console", "json"):
            raise ValueError(f"Invalid log format: {v}. Must be 'console' or 'json'")
        return v
