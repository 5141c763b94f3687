"""Tests for single-flight de-duplication in FetchCoordinator."""

from __future__ import annotations

import asyncio

import pytest

from decision_surface.shared.errors import FetchCancelledError, FetchTimeoutError
from decision_surface.shared.models.source import SourceId, SourceKey

KEY = SourceKey.for_params(SourceId.OVERVIEW)
OTHER_KEY = SourceKey.for_params(SourceId.CLASHES)


class GatedWork:
    """Work function counting its runs and waiting on a shared gate."""

    def __init__(self) -> None:
        self.gate: asyncio.Future = asyncio.get_running_loop().create_future()
        self.runs = 0
        self.aborted = False
        self.tokens = []

    async def __call__(self, token):
        self.runs += 1
        self.tokens.append(token)
        try:
            return await self.gate
        except asyncio.CancelledError:
            self.aborted = True
            raise


class TestSingleFlight:
    """Concurrent callers share one call per key."""

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_call(self, coordinator, settle):
        work = GatedWork()
        first = asyncio.create_task(coordinator.fetch(KEY, 1, work))
        second = asyncio.create_task(coordinator.fetch(KEY, 2, work))
        await settle()

        assert coordinator.in_flight(KEY).waiters == 2
        work.gate.set_result({"todos": 4})

        assert await first == {"todos": 4}
        assert await second == {"todos": 4}
        assert work.runs == 1
        assert coordinator.stats.started == 1
        assert coordinator.stats.joined == 1
        assert coordinator.in_flight_count == 0

    @pytest.mark.asyncio
    async def test_different_keys_run_separately(self, coordinator, settle):
        work_a = GatedWork()
        work_b = GatedWork()
        first = asyncio.create_task(coordinator.fetch(KEY, 1, work_a))
        second = asyncio.create_task(coordinator.fetch(OTHER_KEY, 1, work_b))
        await settle()

        assert coordinator.in_flight_count == 2
        work_a.gate.set_result("a")
        work_b.gate.set_result("b")

        assert await first == "a"
        assert await second == "b"

    @pytest.mark.asyncio
    async def test_failure_reaches_every_waiter(self, coordinator, settle):
        work = GatedWork()
        first = asyncio.create_task(coordinator.fetch(KEY, 1, work))
        second = asyncio.create_task(coordinator.fetch(KEY, 2, work))
        await settle()

        error = FetchTimeoutError("slow backend")
        work.gate.set_exception(error)

        with pytest.raises(FetchTimeoutError):
            await first
        with pytest.raises(FetchTimeoutError):
            await second
        assert coordinator.stats.failed == 1

    @pytest.mark.asyncio
    async def test_finished_call_is_not_reused(self, coordinator):
        work = GatedWork()
        work.gate.set_result(1)
        assert await coordinator.fetch(KEY, 1, work) == 1

        again = GatedWork()
        again.gate.set_result(2)
        assert await coordinator.fetch(KEY, 2, again) == 2
        assert coordinator.stats.started == 2


class TestWaiterCancellation:
    """Cancellation is per waiter; the call dies with its last waiter."""

    @pytest.mark.asyncio
    async def test_cancelled_waiter_leaves_call_running(self, coordinator, settle):
        work = GatedWork()
        first = asyncio.create_task(coordinator.fetch(KEY, 1, work))
        second = asyncio.create_task(coordinator.fetch(KEY, 2, work))
        await settle()

        first.cancel()
        await settle()

        assert coordinator.in_flight(KEY).waiters == 1
        assert not work.aborted
        work.gate.set_result("kept")
        assert await second == "kept"
        with pytest.raises(asyncio.CancelledError):
            await first

    @pytest.mark.asyncio
    async def test_last_waiter_leaving_aborts_call(self, coordinator, settle):
        work = GatedWork()
        only = asyncio.create_task(coordinator.fetch(KEY, 1, work))
        await settle()
        flight = coordinator.in_flight(KEY)

        only.cancel()
        await settle()

        assert work.aborted
        assert flight.token.is_cancelled
        assert flight.token.reason == "no remaining waiters"
        assert work.tokens == [flight.token]
        assert coordinator.in_flight(KEY) is None
        assert coordinator.stats.aborted == 1
        with pytest.raises(asyncio.CancelledError):
            await only

    @pytest.mark.asyncio
    async def test_new_caller_after_abort_starts_fresh_call(self, coordinator, settle):
        work = GatedWork()
        only = asyncio.create_task(coordinator.fetch(KEY, 1, work))
        await settle()
        only.cancel()
        await settle()

        fresh = GatedWork()
        fresh.gate.set_result("fresh")

        assert await coordinator.fetch(KEY, 2, fresh) == "fresh"
        assert fresh.runs == 1

    @pytest.mark.asyncio
    async def test_cancel_all_surfaces_fetch_cancelled(self, coordinator, settle):
        work = GatedWork()
        waiter = asyncio.create_task(coordinator.fetch(KEY, 1, work))
        await settle()

        assert coordinator.cancel_all() == 1

        with pytest.raises(FetchCancelledError, match="cancel_all") as exc_info:
            await waiter
        assert exc_info.value.is_user_visible is False
        assert work.aborted
        assert coordinator.in_flight_count == 0

    @pytest.mark.asyncio
    async def test_cancel_unknown_key(self, coordinator):
        assert coordinator.cancel(KEY) is False

    @pytest.mark.asyncio
    async def test_work_sees_its_token_cancelled(self, coordinator, settle):
        seen = []

        async def work(token):
            try:
                await asyncio.Event().wait()
            finally:
                seen.append(token.is_cancelled)

        waiter = asyncio.create_task(coordinator.fetch(KEY, 1, work))
        await settle()

        assert coordinator.cancel(KEY) is True
        with pytest.raises(FetchCancelledError):
            await waiter
        assert seen == [True]
        assert coordinator.stats.aborted == 1
