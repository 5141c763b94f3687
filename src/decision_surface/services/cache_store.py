"""Cache stores keyed by SourceKey.

This module provides the cache contract used by every SourceController:

- ``SQLiteCacheStore``: durable store, survives process restarts
- ``MemoryCacheStore``: bounded in-process LRU tier
- ``TieredCacheStore``: memory in front of a durable store

Stores never judge freshness and never raise on storage failure. A store
that cannot read or write logs the failure and behaves as a miss, so the
system degrades to always hitting the network.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from collections import OrderedDict, defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Union

import orjson

from decision_surface.config.models.cache_settings import CacheSettings
from decision_surface.shared.constants import CacheConfig
from decision_surface.shared.errors import (
    ErrorCode,
    ErrorContext,
    InfrastructureError,
)
from decision_surface.shared.logging import log_operation_error, log_operation_success
from decision_surface.shared.models.source import CacheEntry, SourceId, SourceKey

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
CacheStore = Union["MemoryCacheStore", "SQLiteCacheStore", "TieredCacheStore", "NullCacheStore"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CacheStats:
    """Counters for cache activity."""

    hits: int = 0
    misses: int = 0
    writes: int = 0
    write_failures: int = 0
    read_failures: int = 0
    evictions: int = 0

    @property
    def hit_ratio(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


def _log_degraded(
    operation: str,
    code: ErrorCode,
    message: str,
    key: SourceKey | None,
    original_error: Exception,
) -> None:
    error = InfrastructureError(
        code=code,
        message=message,
        context=ErrorContext(
            operation=operation,
            source_id=key.source_id.value if key else None,
        ),
        original_error=original_error,
    )
    log_operation_error(logger=logger, error=error, level=logging.WARNING)


class MemoryCacheStore:
    """Bounded in-memory LRU store.

    Reads refresh recency; once ``max_entries`` is exceeded the least
    recently used entry is dropped.
    """

    def __init__(
        self,
        max_entries: int = CacheConfig.MEMORY_MAX_ENTRIES,
        clock: Clock = utc_now,
    ) -> None:
        if max_entries <= 0:
            msg = f"max_entries must be positive, got {max_entries}"
            raise ValueError(msg)
        self.max_entries = max_entries
        self.clock = clock
        self.stats = CacheStats()
        self._entries: OrderedDict[SourceKey, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: SourceKey) -> CacheEntry | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.stats.misses += 1
                return None
            self._entries.move_to_end(key)
            self.stats.hits += 1
            return entry

    def put(self, key: SourceKey, payload: Any) -> None:
        self.put_entry(CacheEntry(key=key, payload=payload, written_at=self.clock()))

    def put_entry(self, entry: CacheEntry) -> None:
        """Store an existing entry, keeping its ``written_at``."""
        with self._lock:
            self._entries[entry.key] = entry
            self._entries.move_to_end(entry.key)
            self.stats.writes += 1
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
                self.stats.evictions += 1

    def invalidate(self, key: SourceKey) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def invalidate_source(self, source_id: SourceId) -> int:
        with self._lock:
            keys = [key for key in self._entries if key.source_id == source_id]
            for key in keys:
                del self._entries[key]
        return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def close(self) -> None:
        return None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def info(self) -> dict[str, Any]:
        per_source: dict[str, dict[str, int]] = defaultdict(
            lambda: {"entries": 0, "size_bytes": 0}
        )
        with self._lock:
            for key in self._entries:
                per_source[key.source_id.value]["entries"] += 1
        return {
            "backend": "memory",
            "total_entries": len(self._entries),
            "hit_ratio": round(self.stats.hit_ratio, 3),
            "sources": dict(per_source),
        }


class SQLiteCacheStore:
    """Durable SQLite store of JSON payloads.

    One row per ``(source_id, params_fingerprint)``; ``put`` overwrites.
    Uses WAL mode and evicts the least recently written rows past
    ``max_entries``.

    Example:
        >>> store = SQLiteCacheStore(Path("decision_cache.db"))
        >>> store.put(SourceKey.for_params("overview"), {"todos": 4})
        >>> store.get(SourceKey.for_params("overview")).payload
        {'todos': 4}
        >>> store.close()
    """

    def __init__(
        self,
        db_path: Path | str,
        max_entries: int = CacheConfig.MAX_ENTRIES,
        clock: Clock = utc_now,
    ) -> None:
        self.db_path = Path(db_path)
        self.max_entries = max_entries
        self.clock = clock
        self.stats = CacheStats()
        self.conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()
        self._table = CacheConfig.TABLE_NAME
        self._initialize_db()

    @property
    def available(self) -> bool:
        """False once the store has degraded to a no-op."""
        return self.conn is not None

    def _initialize_db(self) -> None:
        context = ErrorContext(
            operation="initialize_cache_db",
            additional_data={"db_path": str(self.db_path)},
        )
        started = time.perf_counter()
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
                isolation_level=None,
            )
            self.conn.execute("PRAGMA journal_mode=WAL")
            self.conn.execute("PRAGMA synchronous=NORMAL")
            self.conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self._table} (
                    source_id TEXT NOT NULL,
                    params_fingerprint TEXT NOT NULL,
                    payload BLOB NOT NULL,
                    payload_size INTEGER NOT NULL,
                    written_at REAL NOT NULL,
                    PRIMARY KEY (source_id, params_fingerprint)
                )
                """
            )
            self.conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{self._table}_written_at "
                f"ON {self._table} (written_at)"
            )
            log_operation_success(
                logger=logger,
                operation="initialize_cache_db",
                duration_ms=(time.perf_counter() - started) * 1000,
                context=context,
            )
        except (sqlite3.Error, OSError) as e:
            if self.conn is not None:
                self.conn.close()
            self.conn = None
            _log_degraded(
                "initialize_cache_db",
                ErrorCode.CACHE_ERROR,
                f"Cache database unavailable, continuing without cache: {self.db_path}",
                None,
                e,
            )

    def get(self, key: SourceKey) -> CacheEntry | None:
        if self.conn is None:
            self.stats.misses += 1
            return None

        try:
            with self._lock:
                row = self.conn.execute(
                    f"SELECT payload, written_at FROM {self._table} "
                    "WHERE source_id = ? AND params_fingerprint = ?",
                    (key.source_id.value, key.params_fingerprint),
                ).fetchone()
        except sqlite3.Error as e:
            self.stats.read_failures += 1
            self.stats.misses += 1
            _log_degraded(
                "cache_get",
                ErrorCode.CACHE_READ_FAILED,
                f"Cache read failed for {key}",
                key,
                e,
            )
            return None

        if row is None:
            self.stats.misses += 1
            return None

        blob, written_at = row
        try:
            payload = orjson.loads(blob)
        except orjson.JSONDecodeError as e:
            self.stats.misses += 1
            _log_degraded(
                "cache_get",
                ErrorCode.CACHE_CORRUPTED,
                f"Dropping corrupted cache entry for {key}",
                key,
                e,
            )
            self.invalidate(key)
            return None

        self.stats.hits += 1
        return CacheEntry(
            key=key,
            payload=payload,
            written_at=datetime.fromtimestamp(written_at, tz=timezone.utc),
        )

    def put(self, key: SourceKey, payload: Any) -> None:
        if self.conn is None:
            return

        try:
            blob = orjson.dumps(payload)
        except TypeError as e:
            self.stats.write_failures += 1
            _log_degraded(
                "cache_put",
                ErrorCode.CACHE_SERIALIZATION_ERROR,
                f"Payload for {key} is not JSON serializable; not cached",
                key,
                e,
            )
            return

        written_at = self.clock().timestamp()
        try:
            with self._lock:
                self.conn.execute(
                    f"""
                    INSERT INTO {self._table}
                        (source_id, params_fingerprint, payload, payload_size, written_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT (source_id, params_fingerprint) DO UPDATE SET
                        payload = excluded.payload,
                        payload_size = excluded.payload_size,
                        written_at = excluded.written_at
                    """,
                    (
                        key.source_id.value,
                        key.params_fingerprint,
                        blob,
                        len(blob),
                        written_at,
                    ),
                )
                evicted = self._evict_overflow()
        except sqlite3.Error as e:
            self.stats.write_failures += 1
            _log_degraded(
                "cache_put",
                ErrorCode.CACHE_WRITE_FAILED,
                f"Cache write failed for {key}",
                key,
                e,
            )
            return

        self.stats.writes += 1
        self.stats.evictions += evicted
        if evicted:
            logger.debug("Evicted %d cache entries past max_entries=%d", evicted, self.max_entries)

    def _evict_overflow(self) -> int:
        # Caller holds self._lock
        if self.conn is None:
            return 0
        cursor = self.conn.execute(
            f"""
            DELETE FROM {self._table} WHERE rowid IN (
                SELECT rowid FROM {self._table}
                ORDER BY written_at DESC
                LIMIT -1 OFFSET ?
            )
            """,
            (self.max_entries,),
        )
        return max(cursor.rowcount, 0)

    def invalidate(self, key: SourceKey) -> None:
        if self.conn is None:
            return
        try:
            with self._lock:
                self.conn.execute(
                    f"DELETE FROM {self._table} "
                    "WHERE source_id = ? AND params_fingerprint = ?",
                    (key.source_id.value, key.params_fingerprint),
                )
        except sqlite3.Error as e:
            _log_degraded(
                "cache_invalidate",
                ErrorCode.CACHE_WRITE_FAILED,
                f"Cache invalidation failed for {key}",
                key,
                e,
            )

    def invalidate_source(self, source_id: SourceId) -> int:
        """Remove every entry of one source. Returns the number removed."""
        if self.conn is None:
            return 0
        try:
            with self._lock:
                cursor = self.conn.execute(
                    f"DELETE FROM {self._table} WHERE source_id = ?",
                    (source_id.value,),
                )
        except sqlite3.Error as e:
            _log_degraded(
                "cache_invalidate_source",
                ErrorCode.CACHE_WRITE_FAILED,
                f"Cache invalidation failed for source {source_id.value}",
                None,
                e,
            )
            return 0
        return max(cursor.rowcount, 0)

    def clear(self) -> None:
        if self.conn is None:
            return
        try:
            with self._lock:
                self.conn.execute(f"DELETE FROM {self._table}")
        except sqlite3.Error as e:
            _log_degraded(
                "cache_clear",
                ErrorCode.CACHE_WRITE_FAILED,
                "Cache clear failed",
                None,
                e,
            )

    def info(self) -> dict[str, Any]:
        """Entry counts and payload sizes per source."""
        result: dict[str, Any] = {
            "backend": "sqlite",
            "db_path": str(self.db_path),
            "available": self.available,
            "total_entries": 0,
            "total_size_bytes": 0,
            "hit_ratio": round(self.stats.hit_ratio, 3),
            "sources": {},
        }
        if self.conn is None:
            return result
        try:
            with self._lock:
                rows = self.conn.execute(
                    f"SELECT source_id, COUNT(*), COALESCE(SUM(payload_size), 0) "
                    f"FROM {self._table} GROUP BY source_id ORDER BY source_id"
                ).fetchall()
        except sqlite3.Error as e:
            _log_degraded(
                "cache_info",
                ErrorCode.CACHE_READ_FAILED,
                "Cache info query failed",
                None,
                e,
            )
            return result

        for source_id, count, size in rows:
            result["sources"][source_id] = {"entries": count, "size_bytes": size}
            result["total_entries"] += count
            result["total_size_bytes"] += size
        return result

    def close(self) -> None:
        """Close database connection."""
        if self.conn is not None:
            with self._lock:
                self.conn.close()
                self.conn = None
            logger.debug("Closed cache database: %s", self.db_path)


class TieredCacheStore:
    """Memory tier in front of a durable store.

    Durable hits are promoted into memory with their original
    ``written_at`` so freshness decisions stay consistent.
    """

    def __init__(
        self,
        memory: MemoryCacheStore,
        durable: SQLiteCacheStore,
    ) -> None:
        self.memory = memory
        self.durable = durable

    def get(self, key: SourceKey) -> CacheEntry | None:
        entry = self.memory.get(key)
        if entry is not None:
            return entry
        entry = self.durable.get(key)
        if entry is not None:
            self.memory.put_entry(entry)
        return entry

    def put(self, key: SourceKey, payload: Any) -> None:
        self.memory.put(key, payload)
        self.durable.put(key, payload)

    def invalidate(self, key: SourceKey) -> None:
        self.memory.invalidate(key)
        self.durable.invalidate(key)

    def invalidate_source(self, source_id: SourceId) -> int:
        self.memory.invalidate_source(source_id)
        return self.durable.invalidate_source(source_id)

    def clear(self) -> None:
        self.memory.clear()
        self.durable.clear()

    def info(self) -> dict[str, Any]:
        info = self.durable.info()
        info["memory_entries"] = len(self.memory)
        return info

    def close(self) -> None:
        self.durable.close()


class NullCacheStore:
    """Store that keeps nothing; every read is a miss."""

    def get(self, key: SourceKey) -> CacheEntry | None:
        return None

    def put(self, key: SourceKey, payload: Any) -> None:
        return None

    def invalidate(self, key: SourceKey) -> None:
        return None

    def invalidate_source(self, source_id: SourceId) -> int:
        return 0

    def clear(self) -> None:
        return None

    def info(self) -> dict[str, Any]:
        return {"backend": "disabled", "total_entries": 0, "sources": {}}

    def close(self) -> None:
        return None


def create_cache_store(settings: CacheSettings) -> CacheStore:
    """Build the store described by ``settings``.

    - durable and memory enabled: TieredCacheStore
    - durable only: SQLiteCacheStore
    - memory only: MemoryCacheStore (process lifetime)
    - neither: NullCacheStore
    """
    memory = MemoryCacheStore(settings.memory_max_entries) if settings.memory_enabled else None
    if not settings.enabled:
        if memory is not None:
            return memory
        logger.info("Caching disabled; every load goes to the network")
        return NullCacheStore()

    durable = SQLiteCacheStore(settings.db_path, max_entries=settings.max_entries)
    if memory is None:
        return durable
    return TieredCacheStore(memory, durable)
