"""
CLI Context Management Module

Global CLI state held in a ContextVar so every Typer command reads the
options parsed by the main callback.
"""

from __future__ import annotations

import contextvars
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field


class LogLevel(str, Enum):
    """Log level enumeration for type safety."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class CliContext(BaseModel):
    """
    CLI context model for managing global state.

    Attributes:
        log_level: Effective logging level
        json_output: Whether to output in JSON format
        config_path: Configuration file passed with ``--config``
    """

    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    json_output: bool = Field(default=False, description="Whether to output in JSON format")
    config_path: Path | None = Field(default=None, description="Explicit configuration file")


cli_context_var: contextvars.ContextVar[CliContext | None] = contextvars.ContextVar(
    "cli_context",
    default=None,
)


def get_cli_context() -> CliContext:
    """Return the current CLI context, or defaults when none was set."""
    return cli_context_var.get() or CliContext()


def set_cli_context(context: CliContext) -> None:
    cli_context_var.set(context)


def clear_cli_context() -> None:
    cli_context_var.set(None)
