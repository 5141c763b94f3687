"""Per-source stale-while-revalidate controller.

A SourceController owns exactly one SourceState and drives it through
the load lifecycle:

    load(params)
      -> LoadingWithCache(cached) | LoadingNoCache      (synchronously, first)
      -> Loaded(value)                                  (network success)
      -> ErrorWithCache(err, cached) | ErrorNoCache(err) (network failure)

Cached data is published before any network wait. Network results are
written to the cache inside the single-flight call, so a value fetched
for a superseded caller is still kept for the next one. An aborted call
never writes: its CancellationToken is checked before the write.

Cache reads and writes are synchronous. The SQLite tier is a local file
and its calls run on the event loop thread.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable

from decision_surface.services.cache_store import Clock, utc_now
from decision_surface.services.cancellation import CancellationToken
from decision_surface.services.fetch_coordinator import FetchCoordinator
from decision_surface.services.source_state import (
    IDLE,
    Loaded,
    SourceState,
    error_state,
    loading_state,
)
from decision_surface.shared.errors import FetchCancelledError, FetchError
from decision_surface.shared.logging import log_operation_error
from decision_surface.shared.models.source import SourceId, SourceKey
from decision_surface.shared.protocols import CacheStoreProtocol, SourceFetcher

logger = logging.getLogger(__name__)

StateListener = Callable[[SourceId, SourceState], None]
ApplyGuard = Callable[[], bool]


class LoadOutcome(str, Enum):
    """What a single load() call ended up doing."""

    APPLIED = "applied"
    FRESH = "fresh"
    SUPERSEDED = "superseded"
    CANCELLED = "cancelled"


class SourceController:
    """Drives one SourceState for one source.

    Args:
        source_id: Source this controller loads
        fetcher: Remote call for the source, takes the request params
        cache_store: Cache consulted before and written after the network
        coordinator: Shared single-flight coordinator
        fresh_for: Cached values younger than this skip the network on
            non-forced loads; zero always revalidates
        clock: UTC clock used for freshness checks
    """

    def __init__(
        self,
        source_id: SourceId,
        fetcher: SourceFetcher,
        cache_store: CacheStoreProtocol,
        coordinator: FetchCoordinator,
        *,
        fresh_for: timedelta = timedelta(0),
        clock: Clock = utc_now,
    ) -> None:
        self.source_id = source_id
        self._fetcher = fetcher
        self._cache = cache_store
        self._coordinator = coordinator
        self.fresh_for = fresh_for
        self._clock = clock

        self._state: SourceState = IDLE
        self._listeners: list[StateListener] = []
        self._params: dict[str, Any] = {}
        self._key: SourceKey | None = None
        self._value_written_at: datetime | None = None
        self._load_seq = 0
        self._disposed = False

    def __repr__(self) -> str:
        return f"SourceController({self.source_id.value}, state={self._state.status.value})"

    @property
    def state(self) -> SourceState:
        return self._state

    @property
    def key(self) -> SourceKey | None:
        return self._key

    @property
    def params(self) -> dict[str, Any]:
        return dict(self._params)

    @property
    def disposed(self) -> bool:
        return self._disposed

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register ``listener`` for state changes; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, state: SourceState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(self.source_id, state)
            except Exception:
                logger.exception("State listener failed for %s", self.source_id.value)

    def _cached_value(self, key: SourceKey) -> tuple[Any | None, datetime | None]:
        # A value already shown for the same key counts as cache
        if key == self._key and self._state.has_value:
            return self._state.displayed_value, self._value_written_at

        entry = self._cache.get(key)
        if entry is None:
            return None, None
        return entry.payload, entry.written_at

    def _is_fresh(self, written_at: datetime | None) -> bool:
        if written_at is None or self.fresh_for <= timedelta(0):
            return False
        return self._clock() - written_at < self.fresh_for

    async def _fetch_and_store(
        self,
        key: SourceKey,
        params: Mapping[str, Any],
        token: CancellationToken,
    ) -> Any:
        value = await self._fetcher(params)
        token.raise_if_cancelled()
        self._cache.put(key, value)
        return value

    def _settle(self, cached: Any | None) -> None:
        # Leaves no spinner behind after an abandoned load
        if cached is not None:
            self._publish(Loaded(cached))
        elif self._state.is_loading:
            self._publish(IDLE)

    async def load(
        self,
        params: Mapping[str, Any] | None = None,
        *,
        force: bool = False,
        generation: int | None = None,
        should_apply: ApplyGuard | None = None,
    ) -> LoadOutcome:
        """Load the source, publishing cached data first.

        Args:
            params: Request parameters; ``None`` reuses the last ones
            force: Always hit the network, ignoring ``fresh_for``
            generation: Caller's generation, passed to the coordinator
            should_apply: Checked right before every state write; a false
                result discards the outcome

        Returns:
            LoadOutcome describing what happened
        """
        if self._disposed:
            logger.debug("Ignoring load on disposed controller %s", self.source_id.value)
            return LoadOutcome.CANCELLED

        request = dict(params) if params is not None else dict(self._params)
        key = SourceKey.for_params(self.source_id, request)

        self._load_seq += 1
        seq = self._load_seq

        def is_current() -> bool:
            if self._disposed or seq != self._load_seq:
                return False
            return should_apply is None or should_apply()

        if not is_current():
            return LoadOutcome.SUPERSEDED

        cached, written_at = self._cached_value(key)
        self._params = request
        self._key = key
        self._value_written_at = written_at
        self._publish(loading_state(cached))

        if not force and cached is not None and self._is_fresh(written_at):
            logger.debug("Serving fresh cache for %s", key)
            self._publish(Loaded(cached))
            return LoadOutcome.FRESH

        try:
            value = await self._coordinator.fetch(
                key,
                generation if generation is not None else seq,
                lambda token: self._fetch_and_store(key, request, token),
            )
        except FetchCancelledError:
            if is_current():
                self._settle(cached)
            return LoadOutcome.CANCELLED
        except FetchError as e:
            if not is_current():
                return LoadOutcome.SUPERSEDED
            log_operation_error(
                logger=logger,
                error=e,
                operation=f"load_{self.source_id.value}",
                level=logging.WARNING,
            )
            self._publish(error_state(e, cached))
            return LoadOutcome.APPLIED
        except asyncio.CancelledError:
            if is_current():
                self._settle(cached)
            raise
        except Exception:
            if is_current():
                self._settle(cached)
            raise

        if not is_current():
            logger.debug("Discarding result for %s from superseded load", key)
            return LoadOutcome.SUPERSEDED

        self._value_written_at = self._clock()
        self._publish(Loaded(value))
        return LoadOutcome.APPLIED

    async def refresh(
        self,
        *,
        generation: int | None = None,
        should_apply: ApplyGuard | None = None,
    ) -> LoadOutcome:
        """Force a network load with the last used params."""
        return await self.load(
            None,
            force=True,
            generation=generation,
            should_apply=should_apply,
        )

    async def retry(self, **kwargs: Any) -> LoadOutcome:
        """Retry after an error; same as refresh()."""
        return await self.refresh(**kwargs)

    def dispose(self) -> None:
        """Stop publishing; in-flight loads complete without touching state."""
        self._disposed = True
        self._listeners.clear()
