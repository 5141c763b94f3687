"""Cache configuration model."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

from decision_surface.shared.constants import CacheConfig, FileSystem


class CacheSettings(BaseModel):
    """Cache configuration.

    ``max_entries`` bounds the durable store; the least recently written
    entries are evicted past it.
    """

    enabled: bool = Field(default=True, description="Enable the durable cache")
    directory: Path = Field(
        default=Path.home() / FileSystem.CACHE_DIRECTORY,
        description="Directory holding the cache database",
    )
    max_entries: int = Field(
        default=CacheConfig.MAX_ENTRIES,
        gt=0,
        description="Maximum durable entries across all sources",
    )
    memory_enabled: bool = Field(default=True, description="Enable the in-memory tier")
    memory_max_entries: int = Field(
        default=CacheConfig.MEMORY_MAX_ENTRIES,
        gt=0,
        description="Maximum entries held in memory",
    )

    @property
    def db_path(self) -> Path:
        return self.directory / CacheConfig.DB_FILENAME
