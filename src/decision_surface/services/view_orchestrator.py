"""Screen-level orchestration of several SourceControllers.

One load() starts a new generation and fans out every source of the
screen in parallel. Each source lands independently; results belonging
to an older generation are dropped at the point of application, and the
tasks of the superseded generation are cancelled.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable

from decision_surface.services.source_controller import LoadOutcome, SourceController
from decision_surface.services.source_state import IDLE, SourceState
from decision_surface.shared.errors import (
    ApplicationError,
    ErrorCode,
    ErrorContext,
    FetchError,
)
from decision_surface.shared.logging import log_operation_start, log_operation_success
from decision_surface.shared.models.source import SourceId

logger = logging.getLogger(__name__)

ParamsProvider = Callable[[SourceId], Mapping[str, Any]]
ViewListener = Callable[["ViewState"], None]


@dataclass(frozen=True)
class ViewState:
    """Snapshot of every source state on one screen."""

    screen: str
    generation: int
    sources: Mapping[SourceId, SourceState] = field(default_factory=dict)

    def __getitem__(self, source_id: SourceId) -> SourceState:
        return self.sources[source_id]

    def value(self, source_id: SourceId) -> Any | None:
        return self.sources[source_id].displayed_value

    @property
    def is_loading(self) -> bool:
        return any(state.is_loading for state in self.sources.values())

    @property
    def errors(self) -> dict[SourceId, FetchError]:
        return {
            source_id: state.error
            for source_id, state in self.sources.items()
            if state.error is not None
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "screen": self.screen,
            "generation": self.generation,
            "sources": {sid.value: state.to_dict() for sid, state in self.sources.items()},
        }


class ViewOrchestrator:
    """Coordinates the SourceControllers of one screen.

    Args:
        screen: Screen name, used for logs and ViewState
        controllers: One controller per source shown on the screen
        params_provider: Supplies default request params per source
            when load() is called without explicit ones

    Example:
        >>> async with factory.create("today") as today:
        ...     view = await today.load()
        ...     view.value(SourceId.BRIEFING)
    """

    def __init__(
        self,
        screen: str,
        controllers: Iterable[SourceController],
        *,
        params_provider: ParamsProvider | None = None,
    ) -> None:
        self.screen = screen
        self._controllers: dict[SourceId, SourceController] = {
            controller.source_id: controller for controller in controllers
        }
        self._params_provider = params_provider
        self._generation = 0
        self._closed = False
        self._tasks: dict[SourceId, asyncio.Task[LoadOutcome]] = {}
        self._side_tasks: set[asyncio.Task[LoadOutcome]] = set()
        self._listeners: list[ViewListener] = []
        self._close_callbacks: list[Callable[[], None]] = []
        self._unsubscribers = [
            controller.subscribe(self._on_source_state)
            for controller in self._controllers.values()
        ]

    async def __aenter__(self) -> ViewOrchestrator:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    @property
    def source_ids(self) -> tuple[SourceId, ...]:
        return tuple(self._controllers)

    @property
    def generation(self) -> int | None:
        """Current generation, ``None`` once closed."""
        return None if self._closed else self._generation

    @property
    def closed(self) -> bool:
        return self._closed

    def controller(self, source_id: SourceId) -> SourceController:
        return self._controllers[source_id]

    @property
    def view_state(self) -> ViewState:
        return ViewState(
            screen=self.screen,
            generation=self._generation,
            sources=MappingProxyType(
                {sid: controller.state for sid, controller in self._controllers.items()}
            ),
        )

    def subscribe(self, listener: ViewListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def add_close_callback(self, callback: Callable[[], None]) -> None:
        self._close_callbacks.append(callback)

    def _on_source_state(self, source_id: SourceId, state: SourceState) -> None:
        if self._closed:
            return
        logger.debug(
            "%s/%s -> %s (generation %d)",
            self.screen,
            source_id.value,
            state.status.value,
            self._generation,
        )
        snapshot = self.view_state
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("View listener failed for screen %s", self.screen)

    def _ensure_open(self, operation: str) -> None:
        if self._closed:
            raise ApplicationError(
                ErrorCode.ORCHESTRATOR_CLOSED,
                f"Orchestrator for screen '{self.screen}' is closed",
                ErrorContext(operation=operation),
            )

    def _guard(self, generation: int) -> Callable[[], bool]:
        return lambda: not self._closed and generation == self._generation

    async def _run_source(
        self,
        controller: SourceController,
        generation: int,
        params: Mapping[str, Any] | None,
        force: bool,
    ) -> LoadOutcome:
        try:
            return await controller.load(
                params,
                force=force,
                generation=generation,
                should_apply=self._guard(generation),
            )
        except asyncio.CancelledError:
            raise
        except Exception:
            # Confined to this source; siblings keep loading
            logger.exception(
                "Unexpected failure loading %s on screen %s",
                controller.source_id.value,
                self.screen,
            )
            return LoadOutcome.CANCELLED

    def _resolve_params(
        self,
        source_id: SourceId,
        params_by_source: Mapping[SourceId, Mapping[str, Any]] | None,
    ) -> Mapping[str, Any] | None:
        if params_by_source is not None and source_id in params_by_source:
            return params_by_source[source_id]
        if self._params_provider is not None:
            return self._params_provider(source_id)
        return None

    async def load(
        self,
        params_by_source: Mapping[SourceId, Mapping[str, Any]] | None = None,
        *,
        force: bool = False,
    ) -> ViewState:
        """Start a new generation and load every source in parallel.

        Returns once every source of this generation has settled, or
        earlier if a newer generation supersedes it.

        Args:
            params_by_source: Request params per source; missing sources
                use the params provider
            force: Skip freshness checks on every source

        Raises:
            ApplicationError: The orchestrator is closed
        """
        self._ensure_open("load")
        self._generation += 1
        generation = self._generation
        started = time.perf_counter()
        log_operation_start(
            logger,
            f"load_{self.screen}",
            {"generation": generation, "force": force},
        )

        superseded = self._tasks
        # New tasks are scheduled before the old ones are cancelled, so a
        # shared same-key call keeps at least one waiter.
        self._tasks = {
            source_id: asyncio.create_task(
                self._run_source(
                    controller,
                    generation,
                    self._resolve_params(source_id, params_by_source),
                    force,
                ),
                name=f"{self.screen}:{source_id.value}:g{generation}",
            )
            for source_id, controller in self._controllers.items()
        }
        for task in superseded.values():
            task.cancel()

        tasks = self._tasks
        outcomes = await asyncio.gather(*tasks.values(), return_exceptions=True)

        if generation == self._generation:
            log_operation_success(
                logger,
                f"load_{self.screen}",
                (time.perf_counter() - started) * 1000,
                result_info={
                    "generation": generation,
                    "outcomes": {
                        sid.value: (o.value if isinstance(o, LoadOutcome) else "cancelled")
                        for sid, o in zip(tasks, outcomes)
                    },
                },
            )
        return self.view_state

    async def refresh(
        self,
        params_by_source: Mapping[SourceId, Mapping[str, Any]] | None = None,
    ) -> ViewState:
        """User-initiated refresh: a forced load of the whole screen."""
        return await self.load(params_by_source, force=True)

    async def refresh_source(self, source_id: SourceId) -> LoadOutcome:
        """Force-refresh one source within the current generation.

        Used by triggers. A later full load() supersedes the result.
        """
        self._ensure_open("refresh_source")
        controller = self._controllers[source_id]
        generation = self._generation
        params = None if controller.key is not None else self._resolve_params(source_id, None)
        task = asyncio.create_task(
            self._run_source(controller, generation, params, True),
            name=f"{self.screen}:{source_id.value}:refresh",
        )
        self._side_tasks.add(task)
        task.add_done_callback(self._side_tasks.discard)
        return await task

    def close(self) -> None:
        """Tear down: discard the generation and cancel all outstanding work.

        Nothing is applied to any state after this returns.
        """
        if self._closed:
            return
        self._closed = True
        pending = [*self._tasks.values(), *self._side_tasks]
        for task in pending:
            task.cancel()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        for controller in self._controllers.values():
            controller.dispose()
        self._listeners.clear()
        for callback in self._close_callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Close callback failed for screen %s", self.screen)
        self._close_callbacks.clear()
        logger.debug(
            "Closed %s orchestrator, cancelled %d tasks",
            self.screen,
            sum(1 for t in pending if not t.done()),
        )

    async def aclose(self) -> None:
        """close() and wait for the cancelled tasks to unwind."""
        pending = [*self._tasks.values(), *self._side_tasks]
        self.close()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._tasks = {}
