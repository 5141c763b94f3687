"""
Orchestration Constants

Screen names, watched signals and trigger defaults.
"""

from .cache import BASE_SECOND


class Signals:
    """Names of externally observed signals."""

    HEALTH_AUTHORIZED = "healthAuthorized"


class Screens:
    """Orchestrated screen names."""

    TODAY = "today"
    INSIGHTS = "insights"

    ALL = (TODAY, INSIGHTS)


class OrchestrationConfig:
    """Orchestration defaults."""

    # Wait after permission grant so the backend health sync can land first
    DEFAULT_SETTLE_DELAY = 1.0 * BASE_SECOND
    DEFAULT_RANGE_DAYS = 7
