"""Load command handler.

Loads one screen through its ViewOrchestrator and renders every source
state, cached or fresh, as a table or as JSON.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Any

import orjson
import typer
from rich.console import Console
from rich.table import Table

from decision_surface.cli.context import get_cli_context
from decision_surface.cli.error_handler import handle_cli_error
from decision_surface.cli.json_formatter import echo_json
from decision_surface.containers import Container
from decision_surface.services.source_state import SourceStatus
from decision_surface.services.view_orchestrator import ViewState

logger = logging.getLogger(__name__)
console = Console()

STATUS_STYLES = {
    SourceStatus.IDLE: "dim",
    SourceStatus.LOADING_WITH_CACHE: "yellow",
    SourceStatus.LOADING_NO_CACHE: "yellow",
    SourceStatus.LOADED: "green",
    SourceStatus.ERROR_WITH_CACHE: "magenta",
    SourceStatus.ERROR_NO_CACHE: "red",
}
VALUE_PREVIEW_CHARS = 60


async def load_screen(
    container: Container,
    screen: str,
    *,
    day: date | None = None,
    force: bool = False,
) -> ViewState:
    """Load ``screen`` once and release every resource the run opened."""
    factory = container.screen_factory()
    try:
        async with factory.create(screen, today=day) as orchestrator:
            return await orchestrator.load(force=force)
    finally:
        container.trigger_engine().close()
        await container.backend_client().close()
        container.cache_store().close()


def _preview(value: Any) -> str:
    if value is None:
        return "-"
    text = orjson.dumps(value, option=orjson.OPT_SORT_KEYS, default=str).decode("utf-8")
    if len(text) > VALUE_PREVIEW_CHARS:
        return text[: VALUE_PREVIEW_CHARS - 3] + "..."
    return text


def _render(view: ViewState) -> None:
    table = Table(
        title=f"{view.screen} (generation {view.generation})",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("Source", style="cyan")
    table.add_column("Status")
    table.add_column("Value")
    table.add_column("Error", style="red")

    for source_id, state in view.sources.items():
        error = state.error
        table.add_row(
            source_id.value,
            f"[{STATUS_STYLES[state.status]}]{state.status.value}[/]",
            _preview(state.displayed_value),
            error.message if error is not None else "",
        )
    console.print(table)


def load_command(
    screen: str,
    *,
    day: date | None = None,
    force: bool = False,
    json_output: bool | None = None,
) -> None:
    """Handle ``load SCREEN``."""
    if json_output is None:
        json_output = get_cli_context().json_output

    try:
        view = asyncio.run(load_screen(Container(), screen, day=day, force=force))
    except Exception as e:
        exit_code = handle_cli_error(e, "load", json_output=json_output)
        raise typer.Exit(exit_code) from e

    if json_output:
        echo_json(
            True,
            "load",
            data=view.to_dict(),
            errors=[
                f"{source_id.value}: {error.message}"
                for source_id, error in view.errors.items()
                if view[source_id].shows_error_view
            ],
        )
    else:
        _render(view)
