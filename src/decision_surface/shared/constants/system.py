"""
System Constants

File system locations and CLI defaults.
"""


class FileSystem:
    """File system constants."""

    CACHE_DIRECTORY = ".decision_surface"
    CONFIG_DIRECTORY = "config"
    CONFIG_FILENAME = "config.toml"
    ENV_FILENAME = ".env"


class CLIDefaults:
    """CLI defaults."""

    APP_NAME = "decision-surface"
    VERSION = "1.0.0"
    EXIT_SUCCESS = 0
    EXIT_ERROR = 1
