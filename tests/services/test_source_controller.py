"""Tests for the per-source stale-while-revalidate controller."""

from __future__ import annotations

import asyncio
from datetime import date, timedelta

import pytest

from decision_surface.services.cache_store import NullCacheStore
from decision_surface.services.source_controller import LoadOutcome, SourceController
from decision_surface.services.source_state import (
    IDLE,
    ErrorNoCache,
    ErrorWithCache,
    Loaded,
    LoadingNoCache,
    LoadingWithCache,
)
from decision_surface.shared.errors import FetchTimeoutError, NetworkUnavailableError
from decision_surface.shared.models.source import DateRange, SourceId, SourceKey

OVERVIEW_KEY = SourceKey.for_params(SourceId.OVERVIEW)
DAY_ONE = {"range": DateRange.single_day(date(2024, 5, 1))}
DAY_TWO = {"range": DateRange.single_day(date(2024, 5, 2))}


@pytest.fixture
def make_controller(fetchers, memory_store, coordinator, clock):
    def factory(source_id=SourceId.OVERVIEW, store=None, **kwargs):
        return SourceController(
            source_id,
            fetchers[source_id],
            store if store is not None else memory_store,
            coordinator,
            clock=clock,
            **kwargs,
        )

    return factory


def record(controller):
    states = []
    controller.subscribe(lambda _source_id, state: states.append(state))
    return states


class TestCacheFirst:
    """Cached data is shown before the network answers."""

    @pytest.mark.asyncio
    async def test_cached_value_published_before_network(
        self, make_controller, memory_store, backend, settle
    ):
        memory_store.put(OVERVIEW_KEY, {"todos": 3})
        controller = make_controller()
        states = record(controller)

        task = asyncio.create_task(controller.load())
        await settle()

        assert states == [LoadingWithCache({"todos": 3})]
        assert backend.pending("overview") == 1

        backend.resolve("overview", {"todos": 5})
        assert await task is LoadOutcome.APPLIED
        assert states == [LoadingWithCache({"todos": 3}), Loaded({"todos": 5})]
        assert memory_store.get(OVERVIEW_KEY).payload == {"todos": 5}

    @pytest.mark.asyncio
    async def test_no_cache_shows_loading_without_value(self, make_controller, backend, settle):
        controller = make_controller()
        states = record(controller)

        task = asyncio.create_task(controller.load())
        await settle()
        assert states == [LoadingNoCache()]

        backend.resolve("overview", {"todos": 1})
        await task
        assert controller.state == Loaded({"todos": 1})

    @pytest.mark.asyncio
    async def test_loaded_value_acts_as_cache_for_next_load(self, make_controller, backend, settle):
        controller = make_controller(store=NullCacheStore())
        backend.responses["overview"] = {"todos": 1}
        await controller.load()
        states = record(controller)
        del backend.responses["overview"]

        task = asyncio.create_task(controller.load())
        await settle()

        assert states[0] == LoadingWithCache({"todos": 1})
        backend.resolve("overview", {"todos": 2})
        await task
        assert controller.state == Loaded({"todos": 2})


class TestFailures:
    """Errors are stored next to, never instead of, cached data."""

    @pytest.mark.asyncio
    async def test_error_keeps_cached_value(self, make_controller, memory_store, backend, settle):
        memory_store.put(OVERVIEW_KEY, {"todos": 3})
        controller = make_controller()

        task = asyncio.create_task(controller.load())
        await settle()
        error = NetworkUnavailableError("offline")
        backend.fail("overview", error)

        assert await task is LoadOutcome.APPLIED
        assert controller.state == ErrorWithCache(error, {"todos": 3})
        assert controller.state.displayed_value == {"todos": 3}
        assert controller.state.shows_error_view is False
        assert memory_store.get(OVERVIEW_KEY).payload == {"todos": 3}

    @pytest.mark.asyncio
    async def test_error_without_cache_shows_error_view(self, make_controller, backend):
        backend.responses["overview"] = FetchTimeoutError("timed out")
        controller = make_controller()

        await controller.load()

        assert isinstance(controller.state, ErrorNoCache)
        assert controller.state.shows_error_view is True
        assert controller.state.displayed_value is None

    @pytest.mark.asyncio
    async def test_retry_after_error_reaches_network(self, make_controller, backend):
        backend.responses["overview"] = FetchTimeoutError("timed out")
        controller = make_controller()
        await controller.load()

        backend.responses["overview"] = {"todos": 7}
        assert await controller.retry() is LoadOutcome.APPLIED
        assert controller.state == Loaded({"todos": 7})
        assert backend.call_count("overview") == 2


class TestFreshness:
    """fresh_for skips revalidation of young cache entries."""

    @pytest.mark.asyncio
    async def test_fresh_cache_skips_network(self, make_controller, memory_store, backend, clock):
        memory_store.put(OVERVIEW_KEY, {"todos": 3})
        clock.advance(seconds=30)
        controller = make_controller(fresh_for=timedelta(minutes=1))
        states = record(controller)

        assert await controller.load() is LoadOutcome.FRESH
        assert states == [LoadingWithCache({"todos": 3}), Loaded({"todos": 3})]
        assert backend.call_count("overview") == 0

    @pytest.mark.asyncio
    async def test_stale_cache_revalidates(self, make_controller, memory_store, backend, clock):
        memory_store.put(OVERVIEW_KEY, {"todos": 3})
        clock.advance(minutes=5)
        backend.responses["overview"] = {"todos": 4}
        controller = make_controller(fresh_for=timedelta(minutes=1))

        assert await controller.load() is LoadOutcome.APPLIED
        assert backend.call_count("overview") == 1

    @pytest.mark.asyncio
    async def test_force_ignores_freshness(self, make_controller, memory_store, backend):
        memory_store.put(OVERVIEW_KEY, {"todos": 3})
        backend.responses["overview"] = {"todos": 4}
        controller = make_controller(fresh_for=timedelta(hours=1))

        assert await controller.load(force=True) is LoadOutcome.APPLIED
        assert controller.state == Loaded({"todos": 4})


class TestApplication:
    """Only the latest, still-wanted load writes state."""

    @pytest.mark.asyncio
    async def test_guard_discards_result_but_cache_is_written(
        self, make_controller, memory_store, backend, settle
    ):
        controller = make_controller()
        wanted = True

        task = asyncio.create_task(controller.load(should_apply=lambda: wanted))
        await settle()
        wanted = False
        backend.resolve("overview", {"todos": 9})

        assert await task is LoadOutcome.SUPERSEDED
        assert controller.state == LoadingNoCache()
        assert memory_store.get(OVERVIEW_KEY).payload == {"todos": 9}

    @pytest.mark.asyncio
    async def test_latest_load_wins(self, make_controller, backend, settle):
        controller = make_controller(SourceId.BRIEFING)

        older = asyncio.create_task(controller.load(DAY_ONE))
        await settle()
        newer = asyncio.create_task(controller.load(DAY_TWO))
        await settle()

        backend.resolve("briefing", {"day": 1})
        backend.resolve("briefing", {"day": 2})

        assert await older is LoadOutcome.SUPERSEDED
        assert await newer is LoadOutcome.APPLIED
        assert controller.state == Loaded({"day": 2})

    @pytest.mark.asyncio
    async def test_refresh_reuses_last_params(self, make_controller, backend):
        backend.responses["briefing"] = {"meetings": 1}
        controller = make_controller(SourceId.BRIEFING)
        await controller.load(DAY_TWO)

        await controller.refresh()

        assert [r for _, r in backend.calls] == [DAY_TWO["range"], DAY_TWO["range"]]

    @pytest.mark.asyncio
    async def test_same_key_across_controllers_shares_call(self, make_controller, backend, settle):
        first = make_controller()
        second = make_controller()

        tasks = [asyncio.create_task(first.load()), asyncio.create_task(second.load())]
        await settle()
        backend.resolve("overview", {"todos": 2})
        await asyncio.gather(*tasks)

        assert backend.call_count("overview") == 1
        assert first.state == second.state == Loaded({"todos": 2})

    @pytest.mark.asyncio
    async def test_aborted_call_settles_on_cached_value(
        self, make_controller, memory_store, coordinator, settle
    ):
        memory_store.put(OVERVIEW_KEY, {"todos": 3})
        controller = make_controller()

        task = asyncio.create_task(controller.load())
        await settle()
        coordinator.cancel_all()

        assert await task is LoadOutcome.CANCELLED
        assert controller.state == Loaded({"todos": 3})

    @pytest.mark.asyncio
    async def test_aborted_call_without_cache_returns_to_idle(
        self, make_controller, coordinator, settle
    ):
        controller = make_controller()

        task = asyncio.create_task(controller.load())
        await settle()
        coordinator.cancel_all()

        assert await task is LoadOutcome.CANCELLED
        assert controller.state is IDLE

    @pytest.mark.asyncio
    async def test_call_aborted_after_response_is_not_cached(
        self, fetchers, memory_store, coordinator, backend, clock, settle
    ):
        async def aborted_on_return(params):
            value = await fetchers[SourceId.OVERVIEW](params)
            coordinator.cancel(OVERVIEW_KEY)
            return value

        controller = SourceController(
            SourceId.OVERVIEW, aborted_on_return, memory_store, coordinator, clock=clock
        )

        task = asyncio.create_task(controller.load())
        await settle()
        backend.resolve("overview", {"todos": 9})

        assert await task is LoadOutcome.CANCELLED
        assert memory_store.get(OVERVIEW_KEY) is None
        assert controller.state is IDLE

    @pytest.mark.asyncio
    async def test_disposed_controller_ignores_results(self, make_controller, backend, settle):
        controller = make_controller()
        states = record(controller)

        task = asyncio.create_task(controller.load())
        await settle()
        controller.dispose()
        backend.resolve("overview", {"todos": 1})

        assert await task is LoadOutcome.SUPERSEDED
        assert states == [LoadingNoCache()]
        assert await controller.load() is LoadOutcome.CANCELLED

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_load(self, make_controller, backend):
        backend.responses["overview"] = {"todos": 1}
        controller = make_controller()

        def broken(_source_id, _state):
            raise RuntimeError("listener bug")

        controller.subscribe(broken)

        assert await controller.load() is LoadOutcome.APPLIED
        assert controller.state == Loaded({"todos": 1})
