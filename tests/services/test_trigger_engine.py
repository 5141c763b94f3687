"""Tests for edge-triggered, debounced refresh rules."""

from __future__ import annotations

import asyncio

import pytest

from decision_surface.services.trigger_engine import (
    TriggerEngine,
    TriggerRule,
    default_trigger_rules,
)
from decision_surface.shared.constants import Signals
from decision_surface.shared.models.source import SourceId

SIGNAL = Signals.HEALTH_AUTHORIZED


class RefreshRecorder:
    """Refresh target recording which sources it was asked to refresh."""

    def __init__(self) -> None:
        self.refreshed: list[SourceId] = []

    async def __call__(self, source_id: SourceId) -> None:
        self.refreshed.append(source_id)


@pytest.fixture
def recorder():
    return RefreshRecorder()


@pytest.fixture
def engine(recorder):
    engine = TriggerEngine(
        [TriggerRule(SIGNAL, (SourceId.HEALTH_INSIGHTS, SourceId.LIFE_WHEEL), settle_delay=0)]
    )
    engine.register(recorder, [SourceId.HEALTH_INSIGHTS, SourceId.LIFE_WHEEL])
    yield engine
    engine.close()


class TestEdges:
    """Only false -> true transitions fire."""

    @pytest.mark.asyncio
    async def test_rising_edge_fires_once(self, engine, recorder):
        engine.observe(SIGNAL, False)
        engine.observe(SIGNAL, True)
        engine.observe(SIGNAL, True)
        engine.observe(SIGNAL, True)
        await engine.wait_idle()

        assert engine.fire_counts[SIGNAL] == 1
        assert recorder.refreshed == [SourceId.HEALTH_INSIGHTS, SourceId.LIFE_WHEEL]

    @pytest.mark.asyncio
    async def test_unseen_signal_counts_as_false(self, engine):
        engine.observe(SIGNAL, True)
        await engine.wait_idle()

        assert engine.fire_counts[SIGNAL] == 1

    @pytest.mark.asyncio
    async def test_each_settled_rise_fires(self, engine):
        engine.observe(SIGNAL, True)
        await engine.wait_idle()
        engine.observe(SIGNAL, False)
        engine.observe(SIGNAL, True)
        await engine.wait_idle()

        assert engine.fire_counts[SIGNAL] == 2

    @pytest.mark.asyncio
    async def test_false_values_never_fire(self, engine, recorder):
        engine.observe(SIGNAL, False)
        engine.observe(SIGNAL, False)
        await engine.wait_idle()

        assert engine.fire_counts[SIGNAL] == 0
        assert recorder.refreshed == []

    @pytest.mark.asyncio
    async def test_other_signals_ignored(self, engine):
        engine.observe("calendarAuthorized", True)
        await engine.wait_idle()

        assert engine.fire_counts[SIGNAL] == 0
        assert engine.value("calendarAuthorized") is True


class TestDebounce:
    """The settle delay absorbs flapping."""

    @pytest.mark.asyncio
    async def test_drop_within_window_cancels_refresh(self, recorder):
        engine = TriggerEngine([TriggerRule(SIGNAL, (SourceId.BRIEFING,), settle_delay=60)])
        engine.register(recorder, [SourceId.BRIEFING])

        engine.observe(SIGNAL, True)
        assert engine.has_pending(SIGNAL)
        engine.observe(SIGNAL, False)
        await engine.wait_idle()

        assert not engine.has_pending()
        assert engine.fire_counts[SIGNAL] == 0
        assert recorder.refreshed == []

    @pytest.mark.asyncio
    async def test_flapping_collapses_into_one_refresh(self, recorder):
        sleeps: list[float] = []

        async def fake_sleep(delay: float) -> None:
            sleeps.append(delay)
            await asyncio.sleep(0)

        engine = TriggerEngine(
            [TriggerRule(SIGNAL, (SourceId.BRIEFING,), settle_delay=1.0)],
            sleep=fake_sleep,
        )
        engine.register(recorder, [SourceId.BRIEFING])

        engine.observe(SIGNAL, True)
        engine.observe(SIGNAL, False)
        engine.observe(SIGNAL, True)
        await engine.wait_idle()

        assert engine.fire_counts[SIGNAL] == 1
        assert recorder.refreshed == [SourceId.BRIEFING]
        assert sleeps == [1.0]


class TestDispatch:
    """Firing reaches registered targets only."""

    @pytest.mark.asyncio
    async def test_unregistered_target_not_called(self, engine, recorder):
        other = RefreshRecorder()
        unregister = engine.register(other, [SourceId.LIFE_WHEEL])
        unregister()

        engine.observe(SIGNAL, True)
        await engine.wait_idle()

        assert other.refreshed == []
        assert SourceId.LIFE_WHEEL in recorder.refreshed

    @pytest.mark.asyncio
    async def test_failing_target_does_not_stop_others(self, engine, recorder):
        async def broken(_source_id: SourceId) -> None:
            raise RuntimeError("closed screen")

        engine.register(broken, [SourceId.HEALTH_INSIGHTS])

        engine.observe(SIGNAL, True)
        await engine.wait_idle()

        assert recorder.refreshed == [SourceId.HEALTH_INSIGHTS, SourceId.LIFE_WHEEL]

    @pytest.mark.asyncio
    async def test_closed_engine_ignores_signals(self, engine, recorder):
        engine.close()

        engine.observe(SIGNAL, True)
        await engine.wait_idle()

        assert recorder.refreshed == []


class TestRules:
    """Rule definitions."""

    def test_default_rule_covers_health_sources(self):
        (rule,) = default_trigger_rules(settle_delay=2.5)

        assert rule.watched_signal == "healthAuthorized"
        assert rule.dependent_source_ids == (
            SourceId.HEALTH_INSIGHTS,
            SourceId.LIFE_WHEEL,
            SourceId.BRIEFING,
        )
        assert rule.settle_delay == 2.5

    def test_negative_settle_delay_rejected(self):
        with pytest.raises(ValueError):
            TriggerRule(SIGNAL, (SourceId.BRIEFING,), settle_delay=-1)
