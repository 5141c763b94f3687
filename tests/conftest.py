"""
Pytest configuration and shared fixtures for decision surface tests.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Generator
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from decision_surface.config import set_config
from decision_surface.services.cache_store import MemoryCacheStore, SQLiteCacheStore
from decision_surface.services.fetch_coordinator import FetchCoordinator
from decision_surface.services.sources import build_source_fetchers
from decision_surface.shared.models.source import DateRange

TODAY = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = TODAY) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeBackend:
    """Backend whose calls wait until the test resolves them.

    Calls named in ``responses`` answer immediately instead; an exception
    instance there is raised.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, DateRange | None]] = []
        self.responses: dict[str, Any] = {}
        self._pending: dict[str, list[asyncio.Future[Any]]] = defaultdict(list)

    async def _call(self, name: str, date_range: DateRange | None = None) -> Any:
        self.calls.append((name, date_range))
        if name in self.responses:
            response = self.responses[name]
            if isinstance(response, Exception):
                raise response
            return response
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[name].append(future)
        return await future

    def call_count(self, name: str) -> int:
        return sum(1 for called, _ in self.calls if called == name)

    def pending(self, name: str) -> int:
        return sum(1 for future in self._pending[name] if not future.done())

    def _next(self, name: str) -> asyncio.Future[Any]:
        for future in self._pending[name]:
            if not future.done():
                return future
        raise AssertionError(f"No pending call for {name}")

    def resolve(self, name: str, value: Any) -> None:
        self._next(name).set_result(value)

    def fail(self, name: str, error: Exception) -> None:
        self._next(name).set_exception(error)

    async def fetch_briefing(self, date_range: DateRange) -> Any:
        return await self._call("briefing", date_range)

    async def fetch_overview(self) -> Any:
        return await self._call("overview")

    async def fetch_health_insights(self, date_range: DateRange) -> Any:
        return await self._call("health_insights", date_range)

    async def fetch_week_drift_status(self) -> Any:
        return await self._call("week_drift")

    async def fetch_clashes(self) -> Any:
        return await self._call("clashes")

    async def fetch_life_wheel(self, date_range: DateRange) -> Any:
        return await self._call("life_wheel", date_range)


async def drain(rounds: int = 20) -> None:
    """Let pending callbacks and woken tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture(autouse=True)
def isolated_environment(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> Generator[None, None, None]:
    """Run every test away from real config files and with a fresh settings singleton."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    set_config(None)
    yield
    set_config(None)
    package_logger = logging.getLogger("decision_surface")
    package_logger.handlers.clear()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store(clock: FakeClock) -> MemoryCacheStore:
    return MemoryCacheStore(max_entries=16, clock=clock)


@pytest.fixture
def sqlite_store(tmp_path: Path, clock: FakeClock) -> Generator[SQLiteCacheStore, None, None]:
    store = SQLiteCacheStore(tmp_path / "cache" / "decision_cache.db", max_entries=8, clock=clock)
    yield store
    store.close()


@pytest.fixture
def coordinator() -> FetchCoordinator:
    return FetchCoordinator()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def fetchers(backend: FakeBackend) -> dict:
    return build_source_fetchers(backend)


@pytest.fixture
def settle():
    """Coroutine function letting the event loop run woken tasks."""
    return drain
