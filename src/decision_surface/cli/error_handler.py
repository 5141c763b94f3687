"""
CLI Error Handling Utilities

Consistent error output and exit codes across commands.
"""

from __future__ import annotations

import logging
from typing import Any

from rich.console import Console

from decision_surface.cli.json_formatter import echo_json
from decision_surface.shared.constants import CLIDefaults
from decision_surface.shared.errors import (
    ApplicationError,
    DecisionSurfaceError,
    DomainError,
    ErrorCode,
    InfrastructureError,
)

logger = logging.getLogger(__name__)

EXIT_INTERRUPTED = 130


def _describe(error: Exception) -> tuple[str, str]:
    """Map an exception to ``(error_code, message)``."""
    if isinstance(error, DomainError):
        return error.code.value, error.message
    if isinstance(error, ApplicationError):
        return error.code.value, f"Application error: {error.message}"
    if isinstance(error, InfrastructureError):
        return error.code.value, f"Infrastructure error: {error.message}"
    if isinstance(error, DecisionSurfaceError):
        return error.code.value, error.message
    if isinstance(error, KeyboardInterrupt):
        return ErrorCode.CLI_UNEXPECTED_ERROR.value, "Command interrupted by user"
    return ErrorCode.CLI_UNEXPECTED_ERROR.value, f"Unexpected error: {error}"


def handle_cli_error(
    error: BaseException,
    command: str,
    *,
    json_output: bool = False,
) -> int:
    """Log and print ``error``; return the exit code for the command.

    Args:
        error: The exception that occurred
        command: The CLI command being executed
        json_output: Whether to output JSON format
    """
    code, message = _describe(error)  # type: ignore[arg-type]
    exit_code = EXIT_INTERRUPTED if isinstance(error, KeyboardInterrupt) else CLIDefaults.EXIT_ERROR
    context: dict[str, Any] = {
        "command": command,
        "error_type": type(error).__name__,
        "error_code": code,
    }

    if isinstance(error, DecisionSurfaceError):
        logger.error("CLI error in %s: %s", command, message, extra={"context": context})
    elif isinstance(error, KeyboardInterrupt):
        logger.warning("Command interrupted: %s", command)
    else:
        logger.error(
            "CLI error in %s: %s",
            command,
            message,
            exc_info=error,
            extra={"context": context},
        )

    if json_output:
        echo_json(
            False,
            command,
            data={"error_code": code, "exit_code": exit_code},
            errors=[message],
        )
    else:
        Console(stderr=True).print(f"[red]Error:[/red] {message}", highlight=False)
    return exit_code
