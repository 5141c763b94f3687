"""Single-flight fetch coordinator.

Concurrent callers asking for the same SourceKey share one underlying
call. Each caller carries its own generation; the coordinator records it
but never interprets it, that check belongs to whoever applies the result.

Cancellation is per waiter: a cancelled caller stops waiting while the
shared call keeps running for the others. The shared call itself is only
aborted once its last waiter has gone. Every call owns a CancellationToken
that is handed to the work; aborting cancels the token, which in turn
cancels the task.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from decision_surface.services.cancellation import CancellationToken
from decision_surface.shared.errors import ErrorContext, FetchCancelledError
from decision_surface.shared.logging import log_operation_start, log_operation_success
from decision_surface.shared.models.source import SourceKey

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CoordinatorStats:
    """Counters for coordinator activity."""

    started: int = 0
    joined: int = 0
    completed: int = 0
    failed: int = 0
    aborted: int = 0


@dataclass
class InFlightTask:
    """One underlying call and the callers waiting on it.

    Attributes:
        key: SourceKey the call was started for
        generation: Generation of the caller that started the call
        token: Passed to the work; cancelled when the call is aborted
        task: The asyncio task running the work
        waiters: Number of callers currently awaiting ``task``
    """

    key: SourceKey
    generation: int
    token: CancellationToken
    task: asyncio.Task[Any]
    waiters: int = 0
    started_at: float = field(default_factory=time.perf_counter)


class FetchCoordinator:
    """Single-flight de-duplication of remote calls per SourceKey.

    Example:
        >>> coordinator = FetchCoordinator()
        >>> a, b = await asyncio.gather(
        ...     coordinator.fetch(key, 1, lambda token: load_briefing()),
        ...     coordinator.fetch(key, 2, lambda token: load_briefing()),
        ... )  # load_briefing ran once
    """

    def __init__(self) -> None:
        self._in_flight: dict[SourceKey, InFlightTask] = {}
        self.stats = CoordinatorStats()

    def in_flight(self, key: SourceKey) -> InFlightTask | None:
        return self._in_flight.get(key)

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    async def fetch(
        self,
        key: SourceKey,
        generation: int,
        work: Callable[[CancellationToken], Awaitable[T]],
    ) -> T:
        """Run ``work`` for ``key`` or join the call already in flight.

        Args:
            key: Cache/de-duplication key
            generation: Caller's generation, recorded for diagnostics only
            work: Coroutine function performing the call; receives the
                call's CancellationToken and should check it before side effects

        Returns:
            The shared call's result

        Raises:
            FetchError: The shared call failed
            FetchCancelledError: The shared call was aborted underneath this waiter
            asyncio.CancelledError: This waiter was itself cancelled
        """
        flight = self._in_flight.get(key)
        if flight is None:
            flight = self._start(key, generation, work)
        else:
            self.stats.joined += 1
            logger.debug(
                "Joining in-flight call for %s (generation %d joins %d)",
                key,
                generation,
                flight.generation,
            )

        flight.waiters += 1
        try:
            return await asyncio.shield(flight.task)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            # The shared call was aborted while this waiter was still active
            raise FetchCancelledError(
                f"In-flight call for {key} was aborted: {flight.token.reason}",
                ErrorContext(
                    operation="fetch",
                    source_id=key.source_id.value,
                    additional_data={"generation": generation},
                ),
            ) from None
        finally:
            flight.waiters -= 1
            if flight.waiters == 0 and not flight.task.done():
                self._abort(flight, "no remaining waiters")

    def _start(
        self,
        key: SourceKey,
        generation: int,
        work: Callable[[CancellationToken], Awaitable[Any]],
    ) -> InFlightTask:
        log_operation_start(
            logger,
            "fetch",
            {"key": str(key), "generation": generation},
        )
        token = CancellationToken()
        task = asyncio.ensure_future(work(token))
        token.add_callback(task.cancel)
        flight = InFlightTask(
            key=key,
            generation=generation,
            token=token,
            task=task,
        )
        self._in_flight[key] = flight
        self.stats.started += 1
        task.add_done_callback(lambda done: self._on_done(flight, done))
        return flight

    def _on_done(self, flight: InFlightTask, task: asyncio.Future[Any]) -> None:
        if self._in_flight.get(flight.key) is flight:
            del self._in_flight[flight.key]

        duration_ms = (time.perf_counter() - flight.started_at) * 1000
        if task.cancelled():
            logger.debug("In-flight call for %s aborted", flight.key)
            return
        if task.exception() is not None:
            self.stats.failed += 1
            logger.debug(
                "In-flight call for %s failed after %.1fms: %s",
                flight.key,
                duration_ms,
                task.exception(),
            )
            return
        self.stats.completed += 1
        log_operation_success(
            logger,
            "fetch",
            duration_ms,
            context={"key": str(flight.key), "generation": flight.generation},
        )

    def _abort(self, flight: InFlightTask, reason: str) -> None:
        # A new caller must start a fresh call rather than join a dying one
        if self._in_flight.get(flight.key) is flight:
            del self._in_flight[flight.key]
        if flight.token.cancel(reason):
            self.stats.aborted += 1

    def cancel(self, key: SourceKey) -> bool:
        """Abort the call for ``key`` regardless of waiters."""
        flight = self._in_flight.get(key)
        if flight is None:
            return False
        self._abort(flight, "cancelled")
        return True

    def cancel_all(self) -> int:
        """Abort every in-flight call; waiters receive FetchCancelledError."""
        flights = list(self._in_flight.values())
        for flight in flights:
            self._abort(flight, "cancel_all")
        if flights:
            logger.info("Aborted %d in-flight calls", len(flights))
        return len(flights)
