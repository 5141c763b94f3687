"""Configuration package for the decision surface core.

Usage:
    from decision_surface.config import get_config

    settings = get_config()
    settings.cache.max_entries
"""

from decision_surface.config.loader import (
    get_config,
    load_settings,
    reload_config,
    set_config,
)
from decision_surface.config.models import (
    APISettings,
    AppSettings,
    CacheSettings,
    LoggingSettings,
    OrchestrationSettings,
    Settings,
)

__all__ = [
    "APISettings",
    "AppSettings",
    "CacheSettings",
    "LoggingSettings",
    "OrchestrationSettings",
    "Settings",
    "get_config",
    "load_settings",
    "reload_config",
    "set_config",
]
