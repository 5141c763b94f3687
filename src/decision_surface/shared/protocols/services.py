"""Service protocols for dependency inversion.

This module defines the boundaries the orchestration core consumes: the
durable cache contract and the opaque backend request/response surface.
"""

from __future__ import annotations

from collections.abc import Awaitable, Mapping
from typing import Any, Callable, Protocol

from decision_surface.shared.models.source import CacheEntry, DateRange, SourceKey

# One backend call per source: request parameters in, domain value out.
SourceFetcher = Callable[[Mapping[str, Any]], Awaitable[Any]]


class CacheStoreProtocol(Protocol):
    """Key/value store keyed by SourceKey.

    Implementations never raise on storage failure; a failing store
    behaves as an empty one.
    """

    def get(self, key: SourceKey) -> CacheEntry | None:
        """Return the entry for ``key`` if present, without judging freshness."""

    def put(self, key: SourceKey, payload: Any) -> None:
        """Overwrite the entry for ``key``."""

    def invalidate(self, key: SourceKey) -> None:
        """Remove the entry for ``key``."""

    def clear(self) -> None:
        """Remove every entry."""


class BackendProtocol(Protocol):
    """Opaque backend boundary.

    Each call returns a decoded domain value or raises a FetchError subclass.

    Example:
        >>> backend: BackendProtocol = BackendClient(settings.api)
        >>> briefing = await backend.fetch_briefing(DateRange.trailing(1))
    """

    async def fetch_briefing(self, date_range: DateRange) -> Any: ...

    async def fetch_overview(self) -> Any: ...

    async def fetch_health_insights(self, date_range: DateRange) -> Any: ...

    async def fetch_week_drift_status(self) -> Any: ...

    async def fetch_clashes(self) -> Any: ...

    async def fetch_life_wheel(self, date_range: DateRange) -> Any: ...
