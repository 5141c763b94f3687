"""Dependency Injection container for the decision surface core.

The container manages:
- Settings (Singleton)
- Cache store built from the cache settings (Singleton)
- Fetch coordinator shared by every screen (Singleton)
- Backend client and the per-source fetchers bound to it
- Trigger engine with the default rules
- Screen factory assembling ViewOrchestrators
"""

from __future__ import annotations

from dependency_injector import containers, providers

from decision_surface.config.loader import get_config
from decision_surface.services.backend_client import BackendClient
from decision_surface.services.cache_store import create_cache_store
from decision_surface.services.fetch_coordinator import FetchCoordinator
from decision_surface.services.screens import ScreenFactory
from decision_surface.services.sources import build_source_fetchers
from decision_surface.services.trigger_engine import TriggerEngine, default_trigger_rules


class Container(containers.DeclarativeContainer):
    """Dependency Injection container for decision surface services.

    Example:
        >>> container = Container()
        >>> factory = container.screen_factory()
        >>> async with factory.today() as today:
        ...     view = await today.load()
    """

    # Configuration
    config = providers.Singleton(get_config)

    # Cache
    cache_store = providers.Singleton(
        create_cache_store,
        settings=config.provided.cache,
    )

    # Single-flight coordination
    fetch_coordinator = providers.Singleton(FetchCoordinator)

    # Backend
    backend_client = providers.Singleton(
        BackendClient,
        settings=config.provided.api,
    )

    source_fetchers = providers.Singleton(
        build_source_fetchers,
        backend=backend_client,
    )

    # Triggers
    trigger_engine = providers.Singleton(
        TriggerEngine,
        rules=providers.Callable(
            default_trigger_rules,
            settle_delay=config.provided.orchestration.settle_delay,
        ),
    )

    # Screens
    screen_factory = providers.Singleton(
        ScreenFactory,
        fetchers=source_fetchers,
        cache_store=cache_store,
        coordinator=fetch_coordinator,
        settings=config.provided.orchestration,
        trigger_engine=trigger_engine,
    )
