"""Orchestration services.

Bottom-up: cache stores, the single-flight coordinator, per-source
controllers, screen orchestrators and the trigger engine, plus the
backend client they load through.
"""

from decision_surface.services.backend_client import BackendClient
from decision_surface.services.cache_store import (
    MemoryCacheStore,
    NullCacheStore,
    SQLiteCacheStore,
    TieredCacheStore,
    create_cache_store,
)
from decision_surface.services.cancellation import CancellationToken
from decision_surface.services.fetch_coordinator import FetchCoordinator
from decision_surface.services.screens import SCREEN_SOURCES, ScreenFactory
from decision_surface.services.source_controller import LoadOutcome, SourceController
from decision_surface.services.source_state import (
    ErrorNoCache,
    ErrorWithCache,
    Idle,
    Loaded,
    LoadingNoCache,
    LoadingWithCache,
    SourceState,
    SourceStatus,
)
from decision_surface.services.sources import SOURCE_SPECS, SourceSpec, build_source_fetchers
from decision_surface.services.trigger_engine import (
    TriggerEngine,
    TriggerRule,
    default_trigger_rules,
)
from decision_surface.services.view_orchestrator import ViewOrchestrator, ViewState

__all__ = [
    "SCREEN_SOURCES",
    "SOURCE_SPECS",
    "BackendClient",
    "CancellationToken",
    "ErrorNoCache",
    "ErrorWithCache",
    "FetchCoordinator",
    "Idle",
    "LoadOutcome",
    "Loaded",
    "LoadingNoCache",
    "LoadingWithCache",
    "MemoryCacheStore",
    "NullCacheStore",
    "SQLiteCacheStore",
    "ScreenFactory",
    "SourceController",
    "SourceSpec",
    "SourceState",
    "SourceStatus",
    "TieredCacheStore",
    "TriggerEngine",
    "TriggerRule",
    "ViewOrchestrator",
    "ViewState",
    "build_source_fetchers",
    "create_cache_store",
    "default_trigger_rules",
]
