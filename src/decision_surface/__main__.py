"""
Package main entry point for ``python -m decision_surface``.
"""

import logging
import sys

from decision_surface.cli.error_handler import handle_cli_error
from decision_surface.cli.typer_app import app
from decision_surface.shared.constants import CLIDefaults

logger = logging.getLogger(__name__)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        logger.info("Command interrupted by user")
        sys.exit(CLIDefaults.EXIT_ERROR)
    except SystemExit:
        raise
    except Exception as e:
        sys.exit(handle_cli_error(e, "decision-surface"))


if __name__ == "__main__":
    main()
