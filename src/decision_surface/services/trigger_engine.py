"""Edge-triggered refresh rules.

A TriggerRule ties a boolean signal to the sources that depend on it.
Only a false -> true transition fires the rule, after ``settle_delay``
seconds; a true -> false transition during that window cancels the
pending firing. Unchanged values never fire.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Awaitable, Iterable
from dataclasses import dataclass
from typing import Any, Callable

from decision_surface.shared.constants import OrchestrationConfig, Signals
from decision_surface.shared.models.source import SourceId

logger = logging.getLogger(__name__)

RefreshTarget = Callable[[SourceId], Awaitable[Any]]
Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class TriggerRule:
    """Refresh ``dependent_source_ids`` when ``watched_signal`` turns true."""

    watched_signal: str
    dependent_source_ids: tuple[SourceId, ...]
    settle_delay: float = OrchestrationConfig.DEFAULT_SETTLE_DELAY

    def __post_init__(self) -> None:
        if self.settle_delay < 0:
            msg = f"settle_delay must be >= 0, got {self.settle_delay}"
            raise ValueError(msg)


def default_trigger_rules(
    settle_delay: float = OrchestrationConfig.DEFAULT_SETTLE_DELAY,
) -> list[TriggerRule]:
    """Health permission grant refreshes every health-derived source."""
    return [
        TriggerRule(
            watched_signal=Signals.HEALTH_AUTHORIZED,
            dependent_source_ids=(
                SourceId.HEALTH_INSIGHTS,
                SourceId.LIFE_WHEEL,
                SourceId.BRIEFING,
            ),
            settle_delay=settle_delay,
        )
    ]


class TriggerEngine:
    """Observes signals and dispatches debounced refreshes.

    Refresh targets (usually ``ViewOrchestrator.refresh_source``) are
    registered per source id. A firing refreshes every target registered
    for each dependent source.
    """

    def __init__(
        self,
        rules: Iterable[TriggerRule] = (),
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._rules: list[TriggerRule] = list(rules)
        self._sleep = sleep
        self._values: dict[str, bool] = {}
        self._targets: dict[SourceId, list[RefreshTarget]] = defaultdict(list)
        self._pending: dict[tuple[str, int], asyncio.Task[None]] = {}
        self._running: set[asyncio.Task[None]] = set()
        self.fire_counts: dict[str, int] = defaultdict(int)
        self._closed = False

    @property
    def rules(self) -> tuple[TriggerRule, ...]:
        return tuple(self._rules)

    def value(self, signal: str) -> bool:
        """Last observed value of ``signal``; unseen signals read as False."""
        return self._values.get(signal, False)

    def register(
        self,
        target: RefreshTarget,
        source_ids: Iterable[SourceId],
    ) -> Callable[[], None]:
        """Route refreshes of ``source_ids`` to ``target``; returns an unregister callable."""
        registered = tuple(source_ids)
        for source_id in registered:
            self._targets[source_id].append(target)

        def unregister() -> None:
            for source_id in registered:
                targets = self._targets.get(source_id)
                if targets and target in targets:
                    targets.remove(target)

        return unregister

    def has_pending(self, signal: str | None = None) -> bool:
        return any(signal is None or s == signal for s, _ in self._pending)

    def observe(self, signal: str, value: bool) -> None:
        """Record a new value for ``signal`` and react to its edge.

        Must be called from a running event loop.
        """
        if self._closed:
            return
        value = bool(value)
        previous = self._values.get(signal, False)
        self._values[signal] = value
        if previous == value:
            return

        if not value:
            cancelled = self._cancel_pending(signal)
            if cancelled:
                logger.debug("Signal %s dropped, cancelled %d pending refreshes", signal, cancelled)
            return

        for index, rule in enumerate(self._rules):
            if rule.watched_signal != signal:
                continue
            slot = (signal, index)
            existing = self._pending.get(slot)
            if existing is not None:
                existing.cancel()
            task = asyncio.create_task(
                self._fire_after_settle(slot, rule),
                name=f"trigger:{signal}:{index}",
            )
            self._pending[slot] = task
            logger.debug(
                "Signal %s rose, refreshing %s in %.2fs",
                signal,
                [s.value for s in rule.dependent_source_ids],
                rule.settle_delay,
            )

    def _cancel_pending(self, signal: str) -> int:
        slots = [slot for slot in self._pending if slot[0] == signal]
        for slot in slots:
            self._pending.pop(slot).cancel()
        return len(slots)

    async def _fire_after_settle(self, slot: tuple[str, int], rule: TriggerRule) -> None:
        try:
            await self._sleep(rule.settle_delay)
        except asyncio.CancelledError:
            if self._pending.get(slot) is asyncio.current_task():
                del self._pending[slot]
            raise

        if self._pending.get(slot) is asyncio.current_task():
            del self._pending[slot]
        if self._closed or not self.value(rule.watched_signal):
            return

        self.fire_counts[rule.watched_signal] += 1
        logger.info(
            "Trigger %s fired for %s",
            rule.watched_signal,
            ", ".join(s.value for s in rule.dependent_source_ids),
        )
        current = asyncio.current_task()
        if current is not None:
            self._running.add(current)
        try:
            await self._dispatch(rule)
        finally:
            if current is not None:
                self._running.discard(current)

    async def _dispatch(self, rule: TriggerRule) -> None:
        calls = [
            (source_id, target(source_id))
            for source_id in rule.dependent_source_ids
            for target in list(self._targets.get(source_id, ()))
        ]
        if not calls:
            logger.debug("Trigger %s has no registered targets", rule.watched_signal)
            return
        results = await asyncio.gather(*(call for _, call in calls), return_exceptions=True)
        for (source_id, _), result in zip(calls, results):
            if isinstance(result, Exception):
                logger.warning(
                    "Triggered refresh of %s failed: %s",
                    source_id.value,
                    result,
                )

    async def wait_idle(self) -> None:
        """Wait until no firing is pending or running."""
        while True:
            tasks = [t for t in (*self._pending.values(), *self._running) if not t.done()]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    def close(self) -> None:
        self._closed = True
        for task in [*self._pending.values(), *self._running]:
            task.cancel()
        self._pending.clear()
        self._targets.clear()
