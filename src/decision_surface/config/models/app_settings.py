"""Application and logging configuration models."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from decision_surface.shared.constants import CLIDefaults


class AppSettings(BaseModel):
    """Application-level settings."""

    name: str = Field(default=CLIDefaults.APP_NAME, description="Application name")
    version: str = Field(default=CLIDefaults.VERSION, description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")


class LoggingSettings(BaseModel):
    """Logging configuration.

    Console output uses Rich unless ``json_console`` is set; the optional
    log file is always written as JSON lines.
    """

    level: str = Field(default="INFO", description="Logging level")
    file: str | None = Field(default=None, description="Optional JSON log file path")
    json_console: bool = Field(
        default=False,
        description="Emit JSON lines on the console instead of Rich output",
    )

    @field_validator("level")
    @classmethod
    def _validate_level(cls, value: str) -> str:
        upper = value.upper()
        if upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            msg = f"Invalid log level: {value}"
            raise ValueError(msg)
        return upper
