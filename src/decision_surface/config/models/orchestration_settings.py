"""Orchestration configuration model."""

from __future__ import annotations

from datetime import timedelta

from pydantic import BaseModel, Field, field_validator

from decision_surface.shared.constants import CacheConfig, OrchestrationConfig
from decision_surface.shared.errors import DomainError
from decision_surface.shared.models.source import SourceId


class OrchestrationSettings(BaseModel):
    """Refresh policy and trigger settings.

    ``fresh_for_seconds`` maps a source id to the age below which a
    non-forced load serves the cache without revalidating. Sources not
    listed always revalidate.
    """

    settle_delay: float = Field(
        default=OrchestrationConfig.DEFAULT_SETTLE_DELAY,
        ge=0,
        description="Seconds to wait after a signal edge before refreshing",
    )
    default_range_days: int = Field(
        default=OrchestrationConfig.DEFAULT_RANGE_DAYS,
        gt=0,
        description="Days covered by ranged sources when no range is given",
    )
    fresh_for_seconds: dict[str, float] = Field(
        default_factory=dict,
        description="Per-source revalidation skip window in seconds",
    )

    @field_validator("fresh_for_seconds")
    @classmethod
    def _validate_sources(cls, value: dict[str, float]) -> dict[str, float]:
        validated: dict[str, float] = {}
        for source, seconds in value.items():
            if seconds < 0:
                msg = f"fresh_for_seconds[{source}] must be >= 0"
                raise ValueError(msg)
            try:
                source_id = SourceId.parse(source)
            except DomainError as e:
                raise ValueError(e.message) from e
            validated[source_id.value] = float(seconds)
        return validated

    def fresh_for(self, source_id: SourceId) -> timedelta:
        seconds = self.fresh_for_seconds.get(
            source_id.value,
            CacheConfig.DEFAULT_FRESH_FOR,
        )
        return timedelta(seconds=seconds)
