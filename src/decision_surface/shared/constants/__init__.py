"""
Decision Surface Constants Module

Centralized constants for the data orchestration core. All magic values
and configuration defaults are defined here so settings models, services
and the CLI agree on them.
"""

from .cache import BASE_DAY, BASE_HOUR, BASE_MINUTE, BASE_SECOND, CacheConfig
from .network import APIEndpoints, NetworkConfig
from .orchestration import OrchestrationConfig, Screens, Signals
from .system import CLIDefaults, FileSystem

__all__ = [
    "BASE_DAY",
    "BASE_HOUR",
    "BASE_MINUTE",
    "BASE_SECOND",
    "APIEndpoints",
    "CLIDefaults",
    "CacheConfig",
    "FileSystem",
    "NetworkConfig",
    "OrchestrationConfig",
    "Screens",
    "Signals",
]
