"""Configuration models for the decision surface core.

Each configuration domain has its own module; Settings composes them.
"""

from decision_surface.config.models.api_settings import APISettings
from decision_surface.config.models.app_settings import AppSettings, LoggingSettings
from decision_surface.config.models.cache_settings import CacheSettings
from decision_surface.config.models.orchestration_settings import (
    OrchestrationSettings,
)
from decision_surface.config.models.settings import Settings

__all__ = [
    "APISettings",
    "AppSettings",
    "CacheSettings",
    "LoggingSettings",
    "OrchestrationSettings",
    "Settings",
]
