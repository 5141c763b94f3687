"""Shared data models for the orchestration core."""

from .source import (
    CacheEntry,
    DateRange,
    SourceId,
    SourceKey,
    fingerprint_params,
)

__all__ = [
    "CacheEntry",
    "DateRange",
    "SourceId",
    "SourceKey",
    "fingerprint_params",
]
