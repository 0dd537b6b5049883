"""
Tests for courtbot/pipeline/permission_cache.py

TTL expiry, invalidation and store failure policies.
"""

import asyncio
import threading
import time
from dataclasses import replace

import pytest

from courtbot.pipeline.permission_cache import PermissionCache
from courtbot.utils.metrics import metrics

from tests.conftest import ADMIN, GROUP, MEMBER, OTHER_GROUP


@pytest.fixture
def cache(fake_store, settings, clock):
    return PermissionCache(fake_store, settings, clock=clock)


# =============================================================================
# Admin Flag
# =============================================================================

class TestAdminCache:
    """Tests for is_group_admin()."""

    @pytest.mark.asyncio
    async def test_reads_through_once_within_ttl(self, cache, fake_store, clock):
        fake_store.admins.add((GROUP, ADMIN))

        assert await cache.is_group_admin(GROUP, ADMIN) is True
        clock.advance(299)
        assert await cache.is_group_admin(GROUP, ADMIN) is True
        assert fake_store.calls["find_admin_grant"] == 1

    @pytest.mark.asyncio
    async def test_refetches_after_ttl(self, cache, fake_store, clock):
        assert await cache.is_group_admin(GROUP, ADMIN) is False
        fake_store.admins.add((GROUP, ADMIN))

        clock.advance(300)
        assert await cache.is_group_admin(GROUP, ADMIN) is True
        assert fake_store.calls["find_admin_grant"] == 2

    @pytest.mark.asyncio
    async def test_negative_results_are_cached(self, cache, fake_store):
        await cache.is_group_admin(GROUP, MEMBER)
        await cache.is_group_admin(GROUP, MEMBER)
        assert fake_store.calls["find_admin_grant"] == 1

    @pytest.mark.asyncio
    async def test_invalidate_forces_reload(self, cache, fake_store):
        assert await cache.is_group_admin(GROUP, ADMIN) is False
        fake_store.admins.add((GROUP, ADMIN))

        cache.invalidate_admin(GROUP, ADMIN)
        assert await cache.is_group_admin(GROUP, ADMIN) is True

    def test_invalidate_missing_entry_is_noop(self, cache):
        cache.invalidate_admin(GROUP, ADMIN)
        cache.invalidate_admin(GROUP, ADMIN)
        assert cache.stats()["admin_entries"] == 0

    @pytest.mark.asyncio
    async def test_store_failure_denies_and_caches_nothing(self, cache, fake_store):
        fake_store.admins.add((GROUP, ADMIN))
        fake_store.fail = True

        assert await cache.is_group_admin(GROUP, ADMIN) is False
        assert cache.stats()["admin_entries"] == 0
        assert metrics.get_counter("cache.admin.store_error") == 1

        fake_store.fail = False
        assert await cache.is_group_admin(GROUP, ADMIN) is True

    @pytest.mark.asyncio
    async def test_store_timeout_denies(self, fake_store, settings, clock):
        cache = PermissionCache(fake_store, replace(settings, store_timeout_seconds=0.05), clock=clock)
        fake_store.admins.add((GROUP, ADMIN))
        fake_store.delay = 0.3

        assert await cache.is_group_admin(GROUP, ADMIN) is False


# =============================================================================
# Silence Flag
# =============================================================================

class TestSilenceCache:
    """Tests for is_silenced()."""

    @pytest.mark.asyncio
    async def test_silence_ttl_is_shorter(self, cache, fake_store, clock):
        fake_store.silence(GROUP, MEMBER)
        assert await cache.is_silenced(GROUP, MEMBER) is True

        del fake_store.silences[(GROUP, MEMBER)]
        clock.advance(119)
        assert await cache.is_silenced(GROUP, MEMBER) is True

        clock.advance(1)
        assert await cache.is_silenced(GROUP, MEMBER) is False

    @pytest.mark.asyncio
    async def test_invalidate_silence(self, cache, fake_store):
        assert await cache.is_silenced(GROUP, MEMBER) is False
        fake_store.silence(GROUP, MEMBER)

        cache.invalidate_silence(GROUP, MEMBER)
        assert await cache.is_silenced(GROUP, MEMBER) is True

    @pytest.mark.asyncio
    async def test_failure_with_stale_entry_uses_it(self, cache, fake_store, clock):
        fake_store.silence(GROUP, MEMBER)
        assert await cache.is_silenced(GROUP, MEMBER) is True

        clock.advance(500)
        fake_store.fail = True
        assert await cache.is_silenced(GROUP, MEMBER) is True
        assert cache.stats()["stale_fallbacks"] == 1

    @pytest.mark.asyncio
    async def test_failure_without_entry_is_not_silenced(self, cache, fake_store):
        fake_store.silence(GROUP, MEMBER)
        fake_store.fail = True
        assert await cache.is_silenced(GROUP, MEMBER) is False

    @pytest.mark.asyncio
    async def test_entry_does_not_outlive_record_expiry(self, cache, fake_store):
        fake_store.silence(GROUP, MEMBER, expires_at=time.time() - 1)
        assert await cache.is_silenced(GROUP, MEMBER) is True
        del fake_store.silences[(GROUP, MEMBER)]

        # The record had already expired, so nothing live was cached
        assert await cache.is_silenced(GROUP, MEMBER) is False
        assert fake_store.calls["find_silence_record"] == 2


# =============================================================================
# Maintenance
# =============================================================================

class TestCacheMaintenance:
    """Tests for sweep, scope invalidation and stats."""

    @pytest.mark.asyncio
    async def test_sweep_removes_only_expired(self, cache, clock):
        await cache.is_group_admin(GROUP, ADMIN)
        await cache.is_silenced(GROUP, MEMBER)

        clock.advance(150)
        assert cache.sweep() == 1
        stats = cache.stats()
        assert stats["admin_entries"] == 1
        assert stats["silence_entries"] == 0

    @pytest.mark.asyncio
    async def test_invalidate_scope(self, cache):
        await cache.is_group_admin(GROUP, ADMIN)
        await cache.is_silenced(GROUP, MEMBER)
        await cache.is_group_admin(OTHER_GROUP, ADMIN)

        assert cache.invalidate_scope(GROUP) == 2
        assert cache.stats()["admin_entries"] == 1

    @pytest.mark.asyncio
    async def test_hit_and_miss_counts(self, cache):
        await cache.is_group_admin(GROUP, ADMIN)
        await cache.is_group_admin(GROUP, ADMIN)
        stats = cache.stats()
        assert stats["misses"] == 1
        assert stats["hits"] == 1

    @pytest.mark.asyncio
    async def test_sweeper_start_stop(self, cache):
        cache.start_sweeper()
        cache.start_sweeper()
        await cache.stop_sweeper()
        await cache.stop_sweeper()


# =============================================================================
# Invalidation Racing a Lookup
# =============================================================================

async def start_held_lookup(fake_store, lookup):
    """Start a lookup and wait until the store has answered but not returned."""
    fake_store.gate = threading.Event()
    fake_store.held.clear()
    task = asyncio.create_task(lookup)
    assert await asyncio.to_thread(fake_store.held.wait, 1.0)
    return task


def release(fake_store):
    fake_store.gate.set()
    fake_store.gate = None


class TestInvalidationDuringLookup:
    """An invalidation landing while the store is answering must win."""

    @pytest.mark.asyncio
    async def test_revoked_admin_not_cached(self, cache, fake_store):
        fake_store.admins.add((GROUP, ADMIN))
        task = await start_held_lookup(fake_store, cache.is_group_admin(GROUP, ADMIN))

        fake_store.admins.discard((GROUP, ADMIN))
        cache.invalidate_admin(GROUP, ADMIN)
        release(fake_store)

        # The caller already in flight gets the answer it asked for
        assert await task is True
        assert cache.stats()["admin_entries"] == 0
        assert await cache.is_group_admin(GROUP, ADMIN) is False
        assert metrics.get_counter("cache.admin.discarded") == 1

    @pytest.mark.asyncio
    async def test_new_silence_not_hidden(self, cache, fake_store):
        task = await start_held_lookup(fake_store, cache.is_silenced(GROUP, MEMBER))

        fake_store.silence(GROUP, MEMBER)
        cache.invalidate_silence(GROUP, MEMBER)
        release(fake_store)

        assert await task is False
        assert await cache.is_silenced(GROUP, MEMBER) is True

    @pytest.mark.asyncio
    async def test_scope_invalidation_and_clear_also_win(self, cache, fake_store):
        fake_store.admins.add((GROUP, ADMIN))
        task = await start_held_lookup(fake_store, cache.is_group_admin(GROUP, ADMIN))
        cache.invalidate_scope(GROUP)
        release(fake_store)
        await task
        assert cache.stats()["admin_entries"] == 0

        task = await start_held_lookup(fake_store, cache.is_group_admin(GROUP, ADMIN))
        cache.clear()
        release(fake_store)
        await task
        assert cache.stats()["admin_entries"] == 0

    @pytest.mark.asyncio
    async def test_unrelated_lookups_still_cache(self, cache, fake_store):
        cache.invalidate_admin(GROUP, MEMBER)
        await cache.is_group_admin(GROUP, ADMIN)
        await cache.is_group_admin(GROUP, ADMIN)
        assert fake_store.calls["find_admin_grant"] == 1


# =============================================================================
# Size Limit
# =============================================================================

class TestCacheSizeLimit:
    """Tables never grow past max_entries."""

    @pytest.fixture
    def small_cache(self, fake_store, settings, clock):
        return PermissionCache(fake_store, replace(settings, cache_max_entries=3), clock=clock)

    @pytest.mark.asyncio
    async def test_flood_of_actors_is_bounded(self, small_cache):
        for n in range(10):
            await small_cache.is_group_admin(GROUP, f"actor-{n}")
            await small_cache.is_silenced(GROUP, f"actor-{n}")

        stats = small_cache.stats()
        assert stats["admin_entries"] == 3
        assert stats["silence_entries"] == 3
        assert stats["evictions"] == 14

    @pytest.mark.asyncio
    async def test_least_recently_used_goes_first(self, small_cache, fake_store):
        for actor in ("a", "b", "c"):
            await small_cache.is_group_admin(GROUP, actor)
        await small_cache.is_group_admin(GROUP, "a")
        await small_cache.is_group_admin(GROUP, "d")
        assert fake_store.calls["find_admin_grant"] == 4

        await small_cache.is_group_admin(GROUP, "a")
        assert fake_store.calls["find_admin_grant"] == 4
        await small_cache.is_group_admin(GROUP, "b")
        assert fake_store.calls["find_admin_grant"] == 5
