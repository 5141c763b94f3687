"""Command-line interface."""

from decision_surface.cli.typer_app import app

__all__ = ["app"]
