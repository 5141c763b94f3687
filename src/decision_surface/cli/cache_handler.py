"""Cache command handlers: info, clear and invalidate."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from decision_surface.cli.context import get_cli_context
from decision_surface.cli.error_handler import handle_cli_error
from decision_surface.cli.json_formatter import echo_json
from decision_surface.containers import Container
from decision_surface.services.sources import RANGE_PARAM, get_source_spec
from decision_surface.shared.errors import DomainError, ErrorCode, ErrorContext
from decision_surface.shared.models.source import DateRange, SourceId, SourceKey

logger = logging.getLogger(__name__)
console = Console()


def _json_enabled(json_output: bool | None) -> bool:
    return get_cli_context().json_output if json_output is None else json_output


def _run(command: str, json_output: bool, action: Any) -> Any:
    container = Container()
    store = container.cache_store()
    try:
        return action(store)
    except Exception as e:
        exit_code = handle_cli_error(e, command, json_output=json_output)
        raise typer.Exit(exit_code) from e
    finally:
        store.close()


def cache_info_command(*, json_output: bool | None = None) -> None:
    """Handle ``cache info``."""
    json_output = _json_enabled(json_output)
    info = _run("cache info", json_output, lambda store: store.info())

    if json_output:
        echo_json(True, "cache info", data=info)
        return

    console.print(f"[blue]Cache ({info.get('backend', 'sqlite')})[/blue]")
    if "db_path" in info:
        console.print(f"Database: {info['db_path']}")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Source", style="cyan")
    table.add_column("Entries", justify="right", style="green")
    table.add_column("Size", justify="right")
    for source_id, stats in sorted(info.get("sources", {}).items()):
        table.add_row(
            source_id,
            str(stats.get("entries", 0)),
            f"{stats.get('size_bytes', 0)} B",
        )
    table.add_row("total", str(info.get("total_entries", 0)), "", style="bold")
    console.print(table)


def cache_clear_command(*, json_output: bool | None = None) -> None:
    """Handle ``cache clear``."""
    json_output = _json_enabled(json_output)
    _run("cache clear", json_output, lambda store: store.clear())
    logger.info("Cache cleared")

    if json_output:
        echo_json(True, "cache clear", data={"cleared": True})
    else:
        console.print("[green]Cache cleared successfully[/green]")


def _range_key(source_id: SourceId, start: date | None, end: date | None) -> SourceKey:
    if start is None or end is None:
        raise DomainError(
            ErrorCode.VALIDATION_ERROR,
            "--start and --end must be given together",
            ErrorContext(operation="cache_invalidate", source_id=source_id.value),
        )
    if not get_source_spec(source_id).ranged:
        raise DomainError(
            ErrorCode.VALIDATION_ERROR,
            f"Source {source_id.value} does not take a date range",
            ErrorContext(operation="cache_invalidate", source_id=source_id.value),
        )
    return SourceKey.for_params(source_id, {RANGE_PARAM: DateRange(start=start, end=end)})


def cache_invalidate_command(
    source: str,
    *,
    start: date | None = None,
    end: date | None = None,
    json_output: bool | None = None,
) -> None:
    """Handle ``cache invalidate SOURCE [--start D --end D]``.

    With a range only that entry is removed, otherwise every entry of
    the source.
    """
    json_output = _json_enabled(json_output)

    def invalidate(store: Any) -> dict[str, Any]:
        source_id = SourceId.parse(source)
        if start is None and end is None:
            removed = store.invalidate_source(source_id)
            return {"source": source_id.value, "removed": removed}
        key = _range_key(source_id, start, end)
        store.invalidate(key)
        return {"source": source_id.value, "key": str(key)}

    result = _run("cache invalidate", json_output, invalidate)

    if json_output:
        echo_json(True, "cache invalidate", data=result)
    elif "removed" in result:
        console.print(
            f"[green]Removed {result['removed']} cached entries for {result['source']}[/green]"
        )
    else:
        console.print(f"[green]Invalidated {result['key']}[/green]")
