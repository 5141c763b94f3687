"""
Network Configuration Constants

Constants for the backend HTTP client.
"""

from .cache import BASE_SECOND


class NetworkConfig:
    """Network configuration constants."""

    DEFAULT_BASE_URL = "http://localhost:8080"
    REQUEST_TIMEOUT = 30 * BASE_SECOND
    CONNECT_TIMEOUT = 10 * BASE_SECOND

    USER_AGENT = "decision-surface/1.0.0"
    ACCEPT_JSON = "application/json"
    AUTH_HEADER = "Authorization"
    BEARER_PREFIX = "Bearer "


class APIEndpoints:
    """Backend endpoint paths per source."""

    BRIEFING = "/api/v1/today/briefing"
    OVERVIEW = "/api/v1/today/overview"
    HEALTH_INSIGHTS = "/api/v1/health/insights"
    WEEK_DRIFT = "/api/v1/week/drift"
    CLASHES = "/api/v1/calendar/clashes"
    LIFE_WHEEL = "/api/v1/life-wheel"

    PARAM_START = "start"
    PARAM_END = "end"
    PARAM_TIMEZONE = "timezone"
