"""Two-tier (fresh/stale) content cache with single-flight origin fetches.

Each key moves FRESH -> STALE -> EXPIRED purely by wall-clock comparison with
its two deadlines; ``set()`` always resets it to FRESH. Expired entries are
never served: a backup that old is treated as a miss, not as degraded data.

Storage is delegated to a backend implementing CacheBackendProtocol. Backends
catch their own infrastructure errors: read failures return ``None`` (treated
as a miss), write failures are logged and ignored (the fetched value is still
returned to the caller). Infrastructure errors never cross the cache boundary.
Origin errors are a different matter: they are either answered with a stale
copy or re-raised to the caller, who substitutes a static default.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from functools import partial
from typing import TYPE_CHECKING, Any

import aiosqlite
import structlog

from higcontext.models.cache import CacheEntry, CacheHit, CacheTier

if TYPE_CHECKING:
    from higcontext.config import CacheSettings
    from higcontext.protocols import CacheBackendProtocol

log = structlog.get_logger()

Clock = Callable[[], datetime]
OriginFetch = Callable[[], Awaitable[Any]]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ResilientCache:
    """Key -> value cache with graceful degradation and fetch coalescing."""

    def __init__(
        self,
        backend: CacheBackendProtocol,
        *,
        fresh_ttl: timedelta = timedelta(hours=1),
        stale_ttl: timedelta | None = None,
        clock: Clock = _utcnow,
    ) -> None:
        stale_ttl = fresh_ttl * 24 if stale_ttl is None else stale_ttl
        if stale_ttl < fresh_ttl:
            raise ValueError("stale_ttl must be at least fresh_ttl")
        self._backend = backend
        self._fresh_ttl = fresh_ttl
        self._stale_ttl = stale_ttl
        self._clock = clock
        # key -> the one origin fetch currently running for it
        self._inflight: dict[str, asyncio.Task[CacheHit]] = {}

    @classmethod
    def from_settings(
        cls,
        backend: CacheBackendProtocol,
        settings: CacheSettings,
        *,
        clock: Clock = _utcnow,
    ) -> ResilientCache:
        fresh_ttl = timedelta(seconds=settings.fresh_ttl_seconds)
        return cls(
            backend,
            fresh_ttl=fresh_ttl,
            stale_ttl=fresh_ttl * settings.stale_ttl_multiplier,
            clock=clock,
        )

    async def get(self, key: str) -> CacheHit | None:
        """Return the value and its tier, or ``None`` once past the stale deadline."""
        entry = await self._backend.read(key)
        if entry is None:
            return None
        tier = entry.tier(self._clock())
        if tier is CacheTier.EXPIRED:
            return None
        return CacheHit(value=entry.value, tier=tier, fetched_at=entry.fetched_at)

    async def set(self, key: str, value: Any) -> CacheEntry:
        """Store ``value`` as FRESH, resetting both deadlines from now."""
        entry = CacheEntry.create(
            key,
            value,
            now=self._clock(),
            fresh_ttl=self._fresh_ttl,
            stale_ttl=self._stale_ttl,
        )
        await self._backend.write(entry)
        return entry

    async def delete(self, key: str) -> None:
        await self._backend.delete(key)

    async def cleanup_expired(self) -> int:
        """Drop entries past their stale deadline. Returns the number removed."""
        removed = await self._backend.purge_expired(self._clock())
        log.info("cache_cleanup_complete", removed=removed)
        return removed

    async def get_with_graceful_fallback(self, key: str, origin_fetch: OriginFetch) -> CacheHit:
        """Return a FRESH value if cached, otherwise refresh from the origin.

        On origin failure the STALE copy is returned (``hit.stale`` is True).
        Only when there is no usable copy at all does the origin error
        propagate. Concurrent callers for the same key share one origin fetch.
        """
        hit = await self.get(key)
        if hit is not None and hit.tier is CacheTier.FRESH:
            log.debug("cache_hit", key=key, tier=hit.tier)
            return hit

        # No await between lookup and registration: the first caller to get
        # here owns the fetch, everyone after it joins.
        task = self._inflight.get(key)
        if task is None:
            log.debug("cache_refresh_started", key=key, tier=hit.tier if hit else "miss")
            task = asyncio.create_task(self._refresh(key, origin_fetch))
            self._inflight[key] = task
            task.add_done_callback(partial(self._forget, key))
        else:
            log.debug("cache_fetch_coalesced", key=key)

        # shield: one impatient caller being cancelled must not cancel the
        # fetch the other callers are waiting on
        return await asyncio.shield(task)

    async def _refresh(self, key: str, origin_fetch: OriginFetch) -> CacheHit:
        # Another fetch may have stored a fresh copy after the caller read the
        # backend but before this task was registered
        current = await self.get(key)
        if current is not None and current.tier is CacheTier.FRESH:
            log.debug("cache_refresh_skipped", key=key)
            return current

        try:
            value = await origin_fetch()
        except Exception as exc:
            fallback = await self.get(key)
            if fallback is not None:
                log.warning("cache_serving_stale", key=key, tier=fallback.tier, error=str(exc))
                return fallback
            log.warning("cache_origin_failed", key=key, error=str(exc))
            raise

        entry = await self.set(key, value)
        log.info("cache_refreshed", key=key)
        return CacheHit(value=value, tier=CacheTier.FRESH, fetched_at=entry.fetched_at)

    def _forget(self, key: str, task: asyncio.Task[CacheHit]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Mark the exception retrieved even if every waiter was cancelled
        if not task.cancelled():
            task.exception()


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------


class MemoryCacheBackend:
    """Process-local backend. Entries are replaced whole, never edited."""

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    async def read(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    async def write(self, entry: CacheEntry) -> None:
        self._entries[entry.key] = entry

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def purge_expired(self, now: datetime) -> int:
        expired = [key for key, entry in self._entries.items() if entry.stale_expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


_CREATE_ENTRY_TABLE = """
CREATE TABLE IF NOT EXISTS cache_entries (
    key              TEXT PRIMARY KEY,
    value            TEXT NOT NULL,
    fetched_at       TEXT NOT NULL,
    fresh_expires_at TEXT NOT NULL,
    stale_expires_at TEXT NOT NULL
)
"""

_CREATE_ENTRY_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_cache_stale_expires ON cache_entries(stale_expires_at)"
)


class SqliteCacheBackend:
    """SQLite-backed storage so cached content survives restarts.

    Values are stored as JSON. All ``aiosqlite.Error`` failures are logged with
    ``exc_info=True`` and degrade to a miss or a no-op.
    """

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def init_db(self) -> None:
        """Create tables and set WAL mode. Called once at startup."""
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute(_CREATE_ENTRY_TABLE)
        await self._db.execute(_CREATE_ENTRY_INDEX)
        await self._db.commit()

    async def read(self, key: str) -> CacheEntry | None:
        try:
            cursor = await self._db.execute(
                "SELECT key, value, fetched_at, fresh_expires_at, stale_expires_at "
                "FROM cache_entries WHERE key = ?",
                (key,),
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            return CacheEntry(
                key=row[0],
                value=json.loads(row[1]),
                fetched_at=datetime.fromisoformat(row[2]),
                fresh_expires_at=datetime.fromisoformat(row[3]),
                stale_expires_at=datetime.fromisoformat(row[4]),
            )
        except aiosqlite.Error:
            log.warning("cache_read_error", key=key, exc_info=True)
            return None

    async def write(self, entry: CacheEntry) -> None:
        try:
            # INSERT OR REPLACE keeps the row swap atomic for concurrent readers
            await self._db.execute(
                "INSERT OR REPLACE INTO cache_entries "
                "(key, value, fetched_at, fresh_expires_at, stale_expires_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    entry.key,
                    json.dumps(entry.value),
                    entry.fetched_at.isoformat(),
                    entry.fresh_expires_at.isoformat(),
                    entry.stale_expires_at.isoformat(),
                ),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_write_error", key=entry.key, exc_info=True)

    async def delete(self, key: str) -> None:
        try:
            await self._db.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_delete_error", key=key, exc_info=True)

    async def purge_expired(self, now: datetime) -> int:
        try:
            cursor = await self._db.execute(
                "DELETE FROM cache_entries WHERE stale_expires_at <= ?", (now.isoformat(),)
            )
            await self._db.commit()
            return cursor.rowcount
        except aiosqlite.Error:
            log.warning("cache_cleanup_error", exc_info=True)
            return 0
