"""
Decision Surface Typer CLI Application

Loads orchestrated screens cache-first and manages the source cache.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Annotated, Optional

import typer

from decision_surface.cli.cache_handler import (
    cache_clear_command,
    cache_info_command,
    cache_invalidate_command,
)
from decision_surface.cli.context import CliContext, LogLevel, set_cli_context
from decision_surface.cli.error_handler import handle_cli_error
from decision_surface.cli.load_handler import load_command
from decision_surface.config import get_config, reload_config, set_config
from decision_surface.shared.constants import CLIDefaults, Screens
from decision_surface.shared.logging import setup_structured_logger

__version__ = CLIDefaults.VERSION

DATE_FORMATS = ["%Y-%m-%d"]


def version_callback(value: bool) -> None:
    """Print version information and exit."""
    if value:
        typer.echo(f"{CLIDefaults.APP_NAME} {__version__}")
        raise typer.Exit


app = typer.Typer(
    name=CLIDefaults.APP_NAME,
    help="Cache-first loading of the today and insights screens.",
    rich_markup_mode="rich",
    no_args_is_help=True,
)

cache_app = typer.Typer(
    help="Inspect and manage the source cache.",
    no_args_is_help=True,
)
app.add_typer(cache_app, name="cache")


@app.callback()
def main(
    config: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="TOML configuration file.",
            exists=True,
            dir_okay=False,
        ),
    ] = None,
    log_level: Annotated[
        Optional[LogLevel],
        typer.Option(
            "--log-level",
            case_sensitive=False,
            help="Override the configured logging level.",
        ),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Enable machine-readable JSON output."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            help="Show version information and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """Load settings and logging before any command runs."""
    try:
        set_config(None)
        settings = reload_config(config) if config else get_config()
        level = log_level.value if log_level else settings.logging.level
        setup_structured_logger(
            level=level,
            log_file=settings.logging.file,
            use_rich_console=not settings.logging.json_console,
        )
        set_cli_context(
            CliContext(
                log_level=LogLevel(level),
                json_output=json_output,
                config_path=config,
            )
        )
    except Exception as e:
        exit_code = handle_cli_error(e, "main-callback", json_output=json_output)
        raise typer.Exit(exit_code) from e


@app.command("load")
def load_command_typer(
    screen: Annotated[
        str,
        typer.Argument(help=f"Screen to load: {', '.join(Screens.ALL)}."),
    ],
    day: Annotated[
        Optional[datetime],
        typer.Option(
            "--day",
            formats=DATE_FORMATS,
            help="Anchor day for ranged sources (default: today, UTC).",
        ),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Revalidate every source, ignoring freshness."),
    ] = False,
) -> None:
    """
    Load a screen: cached values first, then the network.

    Examples:
        decision-surface load today
        decision-surface --json load insights --day 2024-05-01
    """
    load_command(screen, day=day.date() if day else None, force=force)


@cache_app.command("info")
def cache_info_typer() -> None:
    """Show cached entries per source."""
    cache_info_command()


@cache_app.command("clear")
def cache_clear_typer(
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Do not ask for confirmation."),
    ] = False,
) -> None:
    """Remove every cached entry."""
    if not yes:
        typer.confirm("Clear the whole cache?", abort=True)
    cache_clear_command()


@cache_app.command("invalidate")
def cache_invalidate_typer(
    source: Annotated[str, typer.Argument(help="Source id, e.g. briefing or week-drift.")],
    start: Annotated[
        Optional[datetime],
        typer.Option("--start", formats=DATE_FORMATS, help="Range start (ranged sources)."),
    ] = None,
    end: Annotated[
        Optional[datetime],
        typer.Option("--end", formats=DATE_FORMATS, help="Range end (ranged sources)."),
    ] = None,
) -> None:
    """Remove the cached entries of one source."""
    cache_invalidate_command(
        source,
        start=start.date() if start else None,
        end=end.date() if end else None,
    )
