"""Protocol definitions for dependency inversion.

Services depend on these interfaces so fakes can be injected in tests.
"""

from __future__ import annotations

from .services import BackendProtocol, CacheStoreProtocol, SourceFetcher

__all__ = ["BackendProtocol", "CacheStoreProtocol", "SourceFetcher"]
