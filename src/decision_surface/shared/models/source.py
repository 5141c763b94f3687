"""Source identity and cache entry models.

A SourceKey names one cacheable, de-duplicable request: the source it
belongs to plus a deterministic fingerprint of the request parameters.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any

import orjson
from pydantic import BaseModel, ConfigDict, Field, model_validator

from decision_surface.shared.errors import DomainError, ErrorCode, ErrorContext


class SourceId(str, Enum):
    """Independently fetchable and cacheable data sources."""

    BRIEFING = "briefing"
    OVERVIEW = "overview"
    HEALTH_INSIGHTS = "health_insights"
    WEEK_DRIFT = "week_drift"
    CLASHES = "clashes"
    LIFE_WHEEL = "life_wheel"

    @classmethod
    def parse(cls, value: str | SourceId) -> SourceId:
        """Resolve a source id from its value, accepting dashes for underscores."""
        if isinstance(value, SourceId):
            return value
        normalized = value.strip().lower().replace("-", "_")
        try:
            return cls(normalized)
        except ValueError as e:
            raise DomainError(
                ErrorCode.UNKNOWN_SOURCE,
                f"Unknown data source: {value}",
                ErrorContext(operation="parse_source_id", source_id=value),
                original_error=e,
            ) from e


class DateRange(BaseModel):
    """Inclusive calendar date range used as a request parameter."""

    model_config = ConfigDict(frozen=True)

    start: date = Field(..., description="First day of the range")
    end: date = Field(..., description="Last day of the range")

    @model_validator(mode="after")
    def _check_order(self) -> DateRange:
        if self.end < self.start:
            msg = f"DateRange end {self.end} is before start {self.start}"
            raise ValueError(msg)
        return self

    @classmethod
    def single_day(cls, day: date) -> DateRange:
        return cls(start=day, end=day)

    @classmethod
    def trailing(cls, days: int, *, until: date | None = None) -> DateRange:
        """Range of ``days`` days ending on ``until`` (today by default)."""
        if days < 1:
            msg = f"days must be positive, got {days}"
            raise ValueError(msg)
        end = until or datetime.now(timezone.utc).date()
        return cls(start=end - timedelta(days=days - 1), end=end)

    def as_params(self) -> dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


def _normalize(value: Any) -> Any:
    if isinstance(value, DateRange):
        return value.as_params()
    if isinstance(value, BaseModel):
        return _normalize(value.model_dump(mode="json"))
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(k): _normalize(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    return value


def fingerprint_params(params: Mapping[str, Any] | None = None) -> str:
    """Deterministically serialize request parameters.

    Keys are sorted and ``None`` values dropped, so logically identical
    requests always produce the same fingerprint.

    Example:
        >>> fingerprint_params({"range": DateRange.single_day(date(2024, 5, 1))})
        '{"range":{"end":"2024-05-01","start":"2024-05-01"}}'
    """
    normalized = _normalize(params or {})
    return orjson.dumps(normalized, option=orjson.OPT_SORT_KEYS).decode("utf-8")


@dataclass(frozen=True)
class SourceKey:
    """Cache and de-duplication key: ``(source_id, params_fingerprint)``."""

    source_id: SourceId
    params_fingerprint: str

    @classmethod
    def for_params(
        cls,
        source_id: SourceId | str,
        params: Mapping[str, Any] | None = None,
    ) -> SourceKey:
        return cls(SourceId.parse(source_id), fingerprint_params(params))

    def __str__(self) -> str:
        return f"{self.source_id.value}:{self.params_fingerprint}"


class CacheEntry(BaseModel):
    """A stored payload for one SourceKey.

    No TTL is attached; freshness is judged by the SourceController from
    ``written_at``.
    """

    model_config = ConfigDict(frozen=True)

    key: SourceKey = Field(..., description="Key the payload was stored under")
    payload: Any = Field(..., description="Opaque JSON-compatible domain value")
    written_at: datetime = Field(..., description="UTC time of the last put")

    def age(self, now: datetime | None = None) -> timedelta:
        now = now or datetime.now(timezone.utc)
        return now - self.written_at
