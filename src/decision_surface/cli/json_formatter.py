"""
JSON Output Formatter

Machine-readable envelope written by every command under ``--json``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import orjson
import typer


def format_json_output(
    success: bool,
    command: str,
    data: Any | None = None,
    errors: list[str] | None = None,
) -> bytes:
    """
    Format command output as JSON.

    Example:
        >>> format_json_output(True, "cache info", {"total_entries": 3})
        b'{\\n  "command": "cache info",\\n  ...'
    """
    errors = errors or []
    payload = {
        "success": success and not errors,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "command": command,
        "data": data,
        "errors": errors,
    }
    return orjson.dumps(
        payload,
        option=orjson.OPT_SORT_KEYS | orjson.OPT_INDENT_2,
        default=str,
    )


def echo_json(
    success: bool,
    command: str,
    data: Any | None = None,
    errors: list[str] | None = None,
    *,
    err: bool = False,
) -> None:
    typer.echo(format_json_output(success, command, data, errors).decode("utf-8"), err=err)
