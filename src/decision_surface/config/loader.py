"""Settings loader and singleton manager.

This module handles:
- Environment variable loading from .env files
- Configuration file loading from TOML
- Thread-safe singleton pattern for the Settings instance
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from decision_surface.config.models.settings import Settings
from decision_surface.shared.constants import FileSystem
from decision_surface.shared.errors import create_config_error

logger = logging.getLogger(__name__)


class SettingsLoader:
    """Thread-safe singleton manager for Settings.

    Uses double-checked locking pattern to ensure thread-safety
    while minimizing lock overhead.
    """

    _instance: Settings | None = None
    _lock: threading.RLock = threading.RLock()

    def get_config(self) -> Settings:
        """Get the global settings instance, loading it if necessary."""
        if self._instance is None:
            with self._lock:
                if self._instance is None:
                    self._instance = load_settings()

        return self._instance

    def reload_config(self, config_path: str | Path | None = None) -> Settings:
        """Reload the global settings instance from configuration files."""
        with self._lock:
            self._instance = load_settings(config_path)

        return self._instance

    def set_config(self, settings: Settings | None) -> None:
        """Replace the global instance (``None`` forces a reload on next access)."""
        with self._lock:
            self._instance = settings


def _load_env_file(env_file: Path | None = None) -> None:
    """Load environment variables from a .env file if one exists."""
    env_file = env_file or Path(FileSystem.ENV_FILENAME)
    if env_file.exists():
        load_dotenv(env_file, override=False)
        logger.debug("Loaded environment from %s", env_file)


def _default_config_paths() -> list[Path]:
    return [
        Path(FileSystem.CONFIG_DIRECTORY) / FileSystem.CONFIG_FILENAME,
        Path(FileSystem.CONFIG_FILENAME),
        Path.home() / FileSystem.CACHE_DIRECTORY / FileSystem.CONFIG_FILENAME,
    ]


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings from a TOML configuration file or the environment.

    Args:
        config_path: Optional path to a TOML configuration file. If None, the
            default locations are tried before falling back to environment
            variables and defaults.

    Returns:
        Settings instance loaded from the specified source

    Raises:
        ApplicationError: If the configuration is missing or invalid
    """
    _load_env_file()

    try:
        if config_path:
            return Settings.from_toml_file(config_path)

        for candidate in _default_config_paths():
            if candidate.exists():
                return Settings.from_toml_file(candidate)

        return Settings()
    except FileNotFoundError as e:
        raise create_config_error(
            str(e),
            config_key="config_path",
            operation="load_settings",
            original_error=e,
        ) from e
    except ValidationError as e:
        raise create_config_error(
            f"Invalid configuration: {e.error_count()} error(s)",
            operation="load_settings",
            original_error=e,
        ) from e


_settings_loader = SettingsLoader()


def get_config() -> Settings:
    """Get the global settings instance."""
    return _settings_loader.get_config()


def reload_config(config_path: str | Path | None = None) -> Settings:
    """Reload the global settings instance."""
    return _settings_loader.reload_config(config_path)


def set_config(settings: Settings | None) -> None:
    """Install a settings instance globally (used by the CLI and tests)."""
    _settings_loader.set_config(settings)
