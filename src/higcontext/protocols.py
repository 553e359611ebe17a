"""Protocol interfaces for swappable components.

The cache, ingestion and scorer reference these protocols, not the concrete
implementations. This allows:
- Tests to use lightweight in-memory implementations
- Future backends (e.g. Redis cache) to be swapped without changing callers
- An embedding-based semantic scorer to be plugged in when one is available
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from datetime import datetime

    from higcontext.models.cache import CacheEntry
    from higcontext.models.search import QueryPlan
    from higcontext.models.section import Section


class CacheBackendProtocol(Protocol):
    """Storage under the resilient cache. Must never raise on I/O failure."""

    async def read(self, key: str) -> CacheEntry | None: ...

    async def write(self, entry: CacheEntry) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def purge_expired(self, now: datetime) -> int: ...


class FetcherProtocol(Protocol):
    """Interface for the origin content fetcher."""

    async def fetch(self, url: str) -> str: ...


class SemanticScorer(Protocol):
    """Optional similarity signal blended into the relevance base score."""

    def similarity(self, section: Section, plan: QueryPlan) -> float: ...
