"""Screen definitions and the factory that assembles them.

- today: briefing, overview, clashes, week_drift
- insights: health_insights, life_wheel
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date, datetime, timezone
from typing import Any

from decision_surface.config.models.orchestration_settings import OrchestrationSettings
from decision_surface.services.cache_store import Clock, utc_now
from decision_surface.services.fetch_coordinator import FetchCoordinator
from decision_surface.services.source_controller import SourceController
from decision_surface.services.sources import get_source_spec
from decision_surface.services.trigger_engine import TriggerEngine
from decision_surface.services.view_orchestrator import ViewOrchestrator
from decision_surface.shared.constants import Screens
from decision_surface.shared.errors import DomainError, ErrorCode, ErrorContext
from decision_surface.shared.models.source import SourceId
from decision_surface.shared.protocols import CacheStoreProtocol, SourceFetcher

logger = logging.getLogger(__name__)

SCREEN_SOURCES: dict[str, tuple[SourceId, ...]] = {
    Screens.TODAY: (
        SourceId.BRIEFING,
        SourceId.OVERVIEW,
        SourceId.CLASHES,
        SourceId.WEEK_DRIFT,
    ),
    Screens.INSIGHTS: (
        SourceId.HEALTH_INSIGHTS,
        SourceId.LIFE_WHEEL,
    ),
}


def screen_sources(screen: str) -> tuple[SourceId, ...]:
    try:
        return SCREEN_SOURCES[screen.strip().lower()]
    except KeyError as e:
        raise DomainError(
            ErrorCode.UNKNOWN_SCREEN,
            f"Unknown screen: {screen} (expected one of {', '.join(Screens.ALL)})",
            ErrorContext(operation="screen_sources", additional_data={"screen": screen}),
            original_error=e,
        ) from e


class ScreenFactory:
    """Builds ViewOrchestrators sharing one cache, coordinator and trigger engine.

    Controllers are created fresh for each orchestrator; the cache and
    the coordinator are shared so screens reuse each other's data and
    de-duplicate each other's calls.
    """

    def __init__(
        self,
        fetchers: Mapping[SourceId, SourceFetcher],
        cache_store: CacheStoreProtocol,
        coordinator: FetchCoordinator,
        settings: OrchestrationSettings | None = None,
        trigger_engine: TriggerEngine | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.fetchers = fetchers
        self.cache_store = cache_store
        self.coordinator = coordinator
        self.settings = settings or OrchestrationSettings()
        self.trigger_engine = trigger_engine
        self.clock = clock

    def default_params(
        self,
        source_id: SourceId,
        *,
        today: date | None = None,
    ) -> dict[str, Any]:
        today = today or datetime.now(timezone.utc).date()
        return get_source_spec(source_id).default_params(
            today=today,
            default_days=self.settings.default_range_days,
        )

    def create_controller(self, source_id: SourceId) -> SourceController:
        return SourceController(
            source_id,
            self.fetchers[source_id],
            self.cache_store,
            self.coordinator,
            fresh_for=self.settings.fresh_for(source_id),
            clock=self.clock,
        )

    def create(self, screen: str, *, today: date | None = None) -> ViewOrchestrator:
        """Assemble the orchestrator for ``screen``.

        Args:
            screen: ``today`` or ``insights``
            today: Anchor day for ranged sources; the current UTC day if omitted
        """
        source_ids = screen_sources(screen)
        orchestrator = ViewOrchestrator(
            screen,
            [self.create_controller(source_id) for source_id in source_ids],
            params_provider=lambda source_id: self.default_params(source_id, today=today),
        )
        if self.trigger_engine is not None:
            unregister = self.trigger_engine.register(orchestrator.refresh_source, source_ids)
            orchestrator.add_close_callback(unregister)
        logger.debug("Created %s screen with sources %s", screen, [s.value for s in source_ids])
        return orchestrator

    def today(self, **kwargs: Any) -> ViewOrchestrator:
        return self.create(Screens.TODAY, **kwargs)

    def insights(self, **kwargs: Any) -> ViewOrchestrator:
        return self.create(Screens.INSIGHTS, **kwargs)
