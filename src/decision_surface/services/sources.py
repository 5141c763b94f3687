"""Source catalogue.

Maps every SourceId onto its backend call and describes which request
parameters it takes. Ranged sources carry a ``range`` parameter holding a
DateRange; the others take no parameters.
"""

from __future__ import annotations

from collections.abc import Awaitable, Mapping
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable

from decision_surface.shared.constants import OrchestrationConfig
from decision_surface.shared.errors import DomainError, ErrorCode, ErrorContext
from decision_surface.shared.models.source import DateRange, SourceId
from decision_surface.shared.protocols import BackendProtocol, SourceFetcher

RANGE_PARAM = "range"


@dataclass(frozen=True)
class SourceSpec:
    """How one source is fetched.

    Attributes:
        source_id: Source this spec describes
        ranged: Whether requests carry a DateRange
        range_days: Fixed range length in days; None uses the configured default
        call: Backend call taking the backend and the (optional) range
    """

    source_id: SourceId
    ranged: bool
    call: Callable[[BackendProtocol, DateRange | None], Awaitable[Any]]
    range_days: int | None = None

    def default_params(
        self,
        *,
        today: date | None = None,
        default_days: int = OrchestrationConfig.DEFAULT_RANGE_DAYS,
    ) -> dict[str, Any]:
        if not self.ranged:
            return {}
        today = today or datetime.now(timezone.utc).date()
        days = self.range_days or default_days
        return {RANGE_PARAM: DateRange.trailing(days, until=today)}


def _range_from_params(source_id: SourceId, params: Mapping[str, Any]) -> DateRange:
    raw = params.get(RANGE_PARAM)
    if raw is None:
        raise DomainError(
            ErrorCode.VALIDATION_ERROR,
            f"Source {source_id.value} requires a '{RANGE_PARAM}' parameter",
            ErrorContext(operation="resolve_params", source_id=source_id.value),
        )
    if isinstance(raw, DateRange):
        return raw
    return DateRange.model_validate(raw)


SOURCE_SPECS: dict[SourceId, SourceSpec] = {
    SourceId.BRIEFING: SourceSpec(
        SourceId.BRIEFING,
        ranged=True,
        call=lambda backend, r: backend.fetch_briefing(r),
        range_days=1,
    ),
    SourceId.OVERVIEW: SourceSpec(
        SourceId.OVERVIEW,
        ranged=False,
        call=lambda backend, _: backend.fetch_overview(),
    ),
    SourceId.HEALTH_INSIGHTS: SourceSpec(
        SourceId.HEALTH_INSIGHTS,
        ranged=True,
        call=lambda backend, r: backend.fetch_health_insights(r),
    ),
    SourceId.WEEK_DRIFT: SourceSpec(
        SourceId.WEEK_DRIFT,
        ranged=False,
        call=lambda backend, _: backend.fetch_week_drift_status(),
    ),
    SourceId.CLASHES: SourceSpec(
        SourceId.CLASHES,
        ranged=False,
        call=lambda backend, _: backend.fetch_clashes(),
    ),
    SourceId.LIFE_WHEEL: SourceSpec(
        SourceId.LIFE_WHEEL,
        ranged=True,
        call=lambda backend, r: backend.fetch_life_wheel(r),
    ),
}


def get_source_spec(source_id: SourceId | str) -> SourceSpec:
    return SOURCE_SPECS[SourceId.parse(source_id)]


def build_source_fetchers(backend: BackendProtocol) -> dict[SourceId, SourceFetcher]:
    """Bind every source spec to ``backend``."""

    def bind(spec: SourceSpec) -> SourceFetcher:
        async def fetch(params: Mapping[str, Any]) -> Any:
            date_range = _range_from_params(spec.source_id, params) if spec.ranged else None
            return await spec.call(backend, date_range)

        fetch.__name__ = f"fetch_{spec.source_id.value}"
        return fetch

    return {source_id: bind(spec) for source_id, spec in SOURCE_SPECS.items()}
