"""SourceState tagged variant.

Exactly one of these cases describes a SourceController at any time:

    Idle
    LoadingWithCache(cached)
    LoadingNoCache
    Loaded(value)
    ErrorWithCache(error, cached)
    ErrorNoCache(error)

``displayed_value`` is what a consumer renders; it is only ``None`` in
``Idle``, ``LoadingNoCache`` and ``ErrorNoCache``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from decision_surface.shared.errors import FetchError


class SourceStatus(str, Enum):
    """Discriminator of the SourceState cases."""

    IDLE = "idle"
    LOADING_WITH_CACHE = "loading_with_cache"
    LOADING_NO_CACHE = "loading_no_cache"
    LOADED = "loaded"
    ERROR_WITH_CACHE = "error_with_cache"
    ERROR_NO_CACHE = "error_no_cache"


@dataclass(frozen=True)
class SourceState:
    """Base of the SourceState cases."""

    status = SourceStatus.IDLE

    @property
    def displayed_value(self) -> Any | None:
        return None

    @property
    def has_value(self) -> bool:
        return False

    @property
    def is_loading(self) -> bool:
        return False

    @property
    def error(self) -> FetchError | None:
        return None

    @property
    def shows_error_view(self) -> bool:
        """Only ErrorNoCache renders an error/empty view."""
        return False

    def to_dict(self) -> dict[str, Any]:
        error = self.error
        return {
            "status": self.status.value,
            "value": self.displayed_value,
            "error": error.to_dict() if error is not None else None,
        }


@dataclass(frozen=True)
class Idle(SourceState):
    status = SourceStatus.IDLE


@dataclass(frozen=True)
class LoadingWithCache(SourceState):
    cached: Any
    status = SourceStatus.LOADING_WITH_CACHE

    @property
    def displayed_value(self) -> Any:
        return self.cached

    @property
    def has_value(self) -> bool:
        return True

    @property
    def is_loading(self) -> bool:
        return True


@dataclass(frozen=True)
class LoadingNoCache(SourceState):
    status = SourceStatus.LOADING_NO_CACHE

    @property
    def is_loading(self) -> bool:
        return True


@dataclass(frozen=True)
class Loaded(SourceState):
    value: Any
    status = SourceStatus.LOADED

    @property
    def displayed_value(self) -> Any:
        return self.value

    @property
    def has_value(self) -> bool:
        return True


@dataclass(frozen=True)
class ErrorWithCache(SourceState):
    error_value: FetchError
    cached: Any
    status = SourceStatus.ERROR_WITH_CACHE

    @property
    def displayed_value(self) -> Any:
        return self.cached

    @property
    def has_value(self) -> bool:
        return True

    @property
    def error(self) -> FetchError:
        return self.error_value


@dataclass(frozen=True)
class ErrorNoCache(SourceState):
    error_value: FetchError
    status = SourceStatus.ERROR_NO_CACHE

    @property
    def error(self) -> FetchError:
        return self.error_value

    @property
    def shows_error_view(self) -> bool:
        return True


IDLE = Idle()
LOADING_NO_CACHE = LoadingNoCache()


def loading_state(cached: Any | None) -> SourceState:
    """Entry state of a load: LoadingWithCache when any prior value exists."""
    if cached is None:
        return LOADING_NO_CACHE
    return LoadingWithCache(cached)


def error_state(error: FetchError, cached: Any | None) -> SourceState:
    """Failure state: an error never blanks an already displayed value."""
    if cached is None:
        return ErrorNoCache(error)
    return ErrorWithCache(error, cached)
