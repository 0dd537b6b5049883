"""
CourtBot - Permission Cache
===========================

Read-through TTL cache over the two hot predicates of the pipeline:
"is this actor a group admin here" and "is this actor silenced here".

DESIGN:
    Each predicate has its own table and its own TTL. Admin structure
    changes rarely, so its TTL is long; silence status must follow
    moderation promptly, so its TTL is short. Entries carry their own
    expiry and every read checks it, so correctness never depends on the
    periodic sweep. The sweep only frees expired entries early.

    Each table holds at most max_entries flags. Reads move an entry to the
    end of the table and inserts evict from the front, so the least
    recently used flag goes first.

    Writes never go through the cache. Every code path that mutates admin
    grants or silence records calls invalidate_admin() or
    invalidate_silence() in the same operation (see services.moderation).

    A lookup that misses reads the table's epoch before asking the store.
    Every invalidation bumps the epoch, and a lookup only caches its
    answer if the epoch is unchanged when the store replies. An
    invalidation that lands while a lookup is in flight therefore wins:
    the in-flight caller gets the answer it asked for, but nothing stale
    is kept for the next one.

    Store lookups run in a worker thread with a bounded timeout. When the
    store fails:
    - admin lookups answer False (fail closed) and cache nothing
    - silence lookups answer the last cached value even if it expired;
      with nothing cached they answer False, so a store outage cannot
      silence every actor in a group

Usage:
    cache = PermissionCache(get_db(), settings)
    if await cache.is_silenced(scope_id, actor_id):
        return
"""

import asyncio
import threading
import time
from collections import OrderedDict
from typing import Callable, Dict, Optional, Protocol, Tuple

from courtbot.core.config import PipelineSettings
from courtbot.core.errors import StoreUnavailable
from courtbot.core.logger import logger
from courtbot.core.models import CacheEntry, SilenceRecord
from courtbot.utils.async_utils import call_blocking
from courtbot.utils.metrics import metrics


Key = Tuple[str, str]


class PermissionStore(Protocol):
    """The part of the durable store the cache reads."""

    def find_admin_grant(self, scope_id: str, actor_id: str) -> bool: ...

    def find_silence_record(self, scope_id: str, actor_id: str) -> Optional[SilenceRecord]: ...


class _FlagTable:
    """Entries of one predicate, in least recently used order."""

    def __init__(self, max_entries: int) -> None:
        self.entries: "OrderedDict[Key, CacheEntry]" = OrderedDict()
        self.max_entries = max_entries
        self.epoch = 0
        self.evictions = 0


class PermissionCache:
    """
    Read-through cache for admin and silence flags.

    Attributes:
        admin_ttl: Seconds an admin flag stays live.
        silence_ttl: Seconds a silence flag stays live.
        max_entries: Upper bound on flags kept per table.
    """

    def __init__(
        self,
        store: PermissionStore,
        settings: PipelineSettings,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._clock = clock
        self.admin_ttl = settings.admin_ttl_seconds
        self.silence_ttl = settings.silence_ttl_seconds
        self.sweep_interval = settings.sweep_interval_seconds
        self.store_timeout = settings.store_timeout_seconds
        self.max_entries = max(1, settings.cache_max_entries)

        self._admin = _FlagTable(self.max_entries)
        self._silence = _FlagTable(self.max_entries)
        self._lock = threading.Lock()

        self._sweep_task: Optional[asyncio.Task] = None
        self._hits = 0
        self._misses = 0
        self._stale = 0

    # =========================================================================
    # Table Helpers
    # =========================================================================

    def _live_value(self, table: _FlagTable, key: Key) -> Tuple[Optional[bool], int]:
        """Cached value (None on miss) and the table epoch seen by this read."""
        now = self._clock()
        with self._lock:
            entry = table.entries.get(key)
            if entry is not None and entry.is_live(now):
                table.entries.move_to_end(key)
                self._hits += 1
                return entry.value, table.epoch
            self._misses += 1
            return None, table.epoch

    def _store_value(self, table: _FlagTable, key: Key, value: bool, ttl: float, epoch: int) -> bool:
        """Cache a store answer unless an invalidation happened since epoch was read."""
        with self._lock:
            if table.epoch != epoch:
                return False
            table.entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)
            table.entries.move_to_end(key)
            while len(table.entries) > table.max_entries:
                table.entries.popitem(last=False)
                table.evictions += 1
            return True

    # =========================================================================
    # Reads
    # =========================================================================

    async def is_group_admin(self, scope_id: str, actor_id: str) -> bool:
        """
        Whether the actor holds an admin grant in the scope.

        Returns False when the store is unavailable.
        """
        key = (scope_id, actor_id)
        cached, epoch = self._live_value(self._admin, key)
        if cached is not None:
            metrics.increment("cache.admin.hit")
            return cached

        metrics.increment("cache.admin.miss")
        try:
            value = bool(await call_blocking(
                "find_admin_grant", self._store.find_admin_grant, scope_id, actor_id,
                timeout=self.store_timeout,
            ))
        except StoreUnavailable as e:
            metrics.increment("cache.admin.store_error")
            logger.error("Admin Lookup Failed", [
                ("Scope", scope_id),
                ("Actor", actor_id),
                ("Error", str(e)[:100]),
                ("Decision", "Not admin"),
            ])
            return False

        if not self._store_value(self._admin, key, value, self.admin_ttl, epoch):
            metrics.increment("cache.admin.discarded")
        return value

    async def is_silenced(self, scope_id: str, actor_id: str) -> bool:
        """
        Whether the actor has an active silence in the scope.

        On store failure, falls back to the last cached value, then to False.
        """
        key = (scope_id, actor_id)
        cached, epoch = self._live_value(self._silence, key)
        if cached is not None:
            metrics.increment("cache.silence.hit")
            return cached

        metrics.increment("cache.silence.miss")
        try:
            record = await call_blocking(
                "find_silence_record", self._store.find_silence_record, scope_id, actor_id,
                timeout=self.store_timeout,
            )
        except StoreUnavailable as e:
            metrics.increment("cache.silence.store_error")
            with self._lock:
                stale = self._silence.entries.get(key)
                if stale is not None:
                    self._stale += 1
            decision = stale.value if stale is not None else False
            logger.error("Silence Lookup Failed", [
                ("Scope", scope_id),
                ("Actor", actor_id),
                ("Error", str(e)[:100]),
                ("Decision", f"{'Stale' if stale is not None else 'No'} cache -> {'silenced' if decision else 'not silenced'}"),
            ])
            return decision

        # The store already filters expired rows, but a row can still cross
        # its expiry before the TTL runs out; cap the entry at that point.
        value = record is not None
        ttl = self.silence_ttl
        if record is not None and record.expires_at is not None:
            ttl = max(0.0, min(ttl, record.expires_at - time.time()))
        if not self._store_value(self._silence, key, value, ttl, epoch):
            metrics.increment("cache.silence.discarded")
        return value

    # =========================================================================
    # Invalidation
    # =========================================================================

    def invalidate_admin(self, scope_id: str, actor_id: str) -> None:
        """Drop the cached admin flag and void lookups in flight."""
        with self._lock:
            self._admin.entries.pop((scope_id, actor_id), None)
            self._admin.epoch += 1
        logger.debug(f"Admin cache invalidated: {scope_id}/{actor_id}")

    def invalidate_silence(self, scope_id: str, actor_id: str) -> None:
        """Drop the cached silence flag and void lookups in flight."""
        with self._lock:
            self._silence.entries.pop((scope_id, actor_id), None)
            self._silence.epoch += 1
        logger.debug(f"Silence cache invalidated: {scope_id}/{actor_id}")

    def invalidate_scope(self, scope_id: str) -> int:
        """
        Drop every cached flag of a scope.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            removed = 0
            for table in (self._admin, self._silence):
                keys = [key for key in table.entries if key[0] == scope_id]
                for key in keys:
                    del table.entries[key]
                table.epoch += 1
                removed += len(keys)
        logger.debug(f"Scope cache invalidated: {scope_id} ({removed} entries)")
        return removed

    def clear(self) -> None:
        """Drop everything."""
        with self._lock:
            for table in (self._admin, self._silence):
                table.entries.clear()
                table.epoch += 1

    # =========================================================================
    # Sweep
    # =========================================================================

    def sweep(self) -> int:
        """
        Remove expired entries from both tables.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        removed = 0
        with self._lock:
            for table in (self._admin, self._silence):
                expired = [key for key, entry in table.entries.items() if not entry.is_live(now)]
                for key in expired:
                    del table.entries[key]
                removed += len(expired)
        if removed:
            logger.debug(f"Permission cache sweep removed {removed} entries")
        return removed

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.sweep()

    def start_sweeper(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self._sweep_task and not self._sweep_task.done():
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        logger.tree("Permission Cache Sweeper Started", [
            ("Interval", f"{self.sweep_interval:g}s"),
            ("Admin TTL", f"{self.admin_ttl:g}s"),
            ("Silence TTL", f"{self.silence_ttl:g}s"),
            ("Max Entries", str(self.max_entries)),
        ], emoji="🧹")

    async def stop_sweeper(self) -> None:
        """Stop the periodic sweep if it is running."""
        if self._sweep_task and not self._sweep_task.done():
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
        self._sweep_task = None

    # =========================================================================
    # Stats
    # =========================================================================

    def stats(self) -> Dict[str, int]:
        """Hit, miss, stale-fallback and eviction counts plus table sizes."""
        with self._lock:
            return {
                "hits": self._hits,
                "misses": self._misses,
                "stale_fallbacks": self._stale,
                "evictions": self._admin.evictions + self._silence.evictions,
                "admin_entries": len(self._admin.entries),
                "silence_entries": len(self._silence.entries),
            }


__all__ = [
    "PermissionCache",
    "PermissionStore",
]
