"""Tests for CacheManager.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

import asyncio

import pytest

from kitcache_core.cache.manager import CacheConfig, CacheManager
from kitcache_core.errors import ConfigurationError, StoreError
from kitcache_core.events import CacheEvent
from kitcache_core.eviction.lru import LRUPolicy
from kitcache_core.store.memory import MemoryStore


class FlakyStore(MemoryStore):
    """Memory store whose reads and writes can be switched to fail."""

    def __init__(self):
        super().__init__()
        self.fail_get = False
        self.fail_set = False

    async def get(self, key):
        if self.fail_get:
            error = StoreError("read failed", key=key)
            self._record_error(error)
            raise error
        return await super().get(key)

    async def set(self, key, value, ttl=None):
        if self.fail_set:
            raise RuntimeError("disk full")
        await super().set(key, value, ttl)


class SlowReadStore(MemoryStore):
    """Memory store whose reads take a scripted amount of time."""

    def __init__(self, delays):
        super().__init__()
        self.delays = list(delays)

    async def get(self, key):
        value = await super().get(key)
        await asyncio.sleep(self.delays.pop(0) if self.delays else 0)
        return value


def record_events(cache, *events):
    """Collect (event, args) tuples published by a cache."""
    seen = []
    for event in events:
        cache.on(event, lambda *args, _event=event: seen.append((_event, args)))
    return seen


class TestCacheManager:
    """Tests for CacheManager basics."""

    @pytest.mark.asyncio
    async def test_basic_operations(self):
        """Test get/set/delete."""
        cache = CacheManager()

        assert await cache.set("key1", "value1")
        assert await cache.get("key1") == "value1"

        assert await cache.delete("key1")
        assert await cache.get("key1") is None
        assert not await cache.delete("key1")

    @pytest.mark.asyncio
    async def test_default_value(self):
        """Test default value on miss."""
        cache = CacheManager()

        assert await cache.get("missing", default="default") == "default"

    @pytest.mark.asyncio
    async def test_has_does_not_count(self):
        """Test has leaves hit/miss counters alone."""
        cache = CacheManager()

        assert not await cache.has("key")
        await cache.set("key", "value")
        assert await cache.has("key")

        stats = cache.get_stats()
        assert stats.hits == 0
        assert stats.misses == 0

    @pytest.mark.asyncio
    async def test_clear(self):
        """Test clear keeps statistics."""
        cache = CacheManager()
        seen = record_events(cache, CacheEvent.CLEAR)

        await cache.set("key1", "value1")
        await cache.set("key2", "value2")

        assert await cache.clear() == 2
        assert cache.size() == 0
        assert await cache.get("key1") is None
        assert cache.get_stats().sets == 2
        assert seen == [(CacheEvent.CLEAR, ())]

    @pytest.mark.asyncio
    async def test_keys_pattern(self):
        """Test keys with pattern."""
        cache = CacheManager()

        await cache.set("user:1", "alice")
        await cache.set("user:2", "bob")
        await cache.set("session:1", "xyz")

        user_keys = await cache.keys("user:*")
        assert sorted(user_keys) == ["user:1", "user:2"]
        assert len(await cache.keys()) == 3

    @pytest.mark.asyncio
    async def test_overwrite_keeps_single_entry(self):
        """Test that setting a key twice tracks it once."""
        cache = CacheManager(max_size=2)

        await cache.set("a", 1)
        await cache.set("a", 2)

        assert cache.size() == 1
        assert await cache.get("a") == 2
        assert cache.get_stats().evictions == 0

    @pytest.mark.asyncio
    async def test_none_is_absent(self):
        """Test that a stored None reads as a miss."""
        cache = CacheManager()

        await cache.set("key", None)
        assert await cache.get("key", default="fallback") == "fallback"

    @pytest.mark.asyncio
    async def test_repr(self):
        """Test repr mentions name and strategy."""
        cache = CacheManager(name="sessions", strategy="lfu")

        assert "sessions" in repr(cache)
        assert "lfu" in repr(cache)


class TestEviction:
    """Tests for capacity enforcement."""

    @pytest.mark.asyncio
    async def test_lru_access_protects_key(self):
        """Test that reading a key saves it from eviction."""
        cache = CacheManager(max_size=2)
        seen = record_events(cache, CacheEvent.EVICTED)

        await cache.set("a", 1)
        await cache.set("b", 2)
        await cache.get("a")
        await cache.set("c", 3)

        assert await cache.get("a") == 1
        assert await cache.get("b") is None
        assert await cache.get("c") == 3
        assert seen == [(CacheEvent.EVICTED, ("b",))]

    @pytest.mark.asyncio
    async def test_lru_oldest_evicted(self):
        """Test eviction at max size."""
        cache = CacheManager(CacheConfig(max_size=3))

        await cache.set("key1", "value1")
        await cache.set("key2", "value2")
        await cache.set("key3", "value3")
        await cache.set("key4", "value4")

        assert cache.size() == 3
        assert await cache.get("key1") is None
        assert cache.get_stats().evictions == 1

    @pytest.mark.asyncio
    async def test_overwrite_counts_as_access(self):
        """Test that overwriting refreshes recency."""
        cache = CacheManager(max_size=2)

        await cache.set("a", 1)
        await cache.set("b", 2)
        await cache.set("a", 10)
        await cache.set("c", 3)

        assert await cache.get("a") == 10
        assert await cache.get("b") is None

    @pytest.mark.asyncio
    async def test_expired_entries_make_room_first(self):
        """Test expired entries are purged before evicting live ones."""
        cache = CacheManager(max_size=2)

        await cache.set("short", 1, ttl=0.05)
        await cache.set("long", 2)
        await asyncio.sleep(0.1)
        await cache.set("new", 3)

        stats = cache.get_stats()
        assert stats.evictions == 0
        assert stats.expirations == 1
        assert await cache.get("long") == 2

    @pytest.mark.asyncio
    async def test_fifo_ignores_access(self):
        """Test FIFO strategy through the manager."""
        cache = CacheManager(max_size=2, strategy="fifo")

        await cache.set("a", 1)
        await cache.set("b", 2)
        await cache.get("a")
        await cache.set("c", 3)

        assert await cache.get("a") is None
        assert await cache.get("b") == 2

    @pytest.mark.asyncio
    async def test_lfu_keeps_frequent(self):
        """Test LFU strategy through the manager."""
        cache = CacheManager(max_size=2, strategy="lfu")

        await cache.set("a", 1)
        await cache.set("b", 2)
        await cache.get("b")
        await cache.get("b")
        await cache.get("a")
        await cache.set("c", 3)

        assert await cache.get("a") is None
        assert await cache.get("b") == 2

    @pytest.mark.asyncio
    async def test_random_with_injected_source(self):
        """Test random strategy uses the injected source."""
        cache = CacheManager(max_size=2, strategy="random", random_source=lambda: 0.0)

        await cache.set("a", 1)
        await cache.set("b", 2)
        await cache.set("c", 3)

        assert await cache.keys() == ["b", "c"]

    @pytest.mark.asyncio
    async def test_prebuilt_policy(self):
        """Test passing an eviction policy instance."""
        policy = LRUPolicy(max_size=2)
        cache = CacheManager(max_size=2, eviction=policy)

        await cache.set("a", 1)
        assert cache.policy is policy
        assert policy.contains("a")

    @pytest.mark.asyncio
    async def test_capacity_under_concurrency(self):
        """Test concurrent writers never overfill the cache."""
        cache = CacheManager(max_size=10)
        sizes = []
        cache.on(CacheEvent.SET, lambda key, value: sizes.append(cache.size()))

        await asyncio.gather(*(cache.set(f"key{i}", i) for i in range(100)))

        assert cache.size() == 10
        assert max(sizes) <= 10
        assert cache.get_stats().evictions == 90


class TestMemoryLimit:
    """Tests for max_memory eviction."""

    @pytest.mark.asyncio
    async def test_pressure_evicts_to_target(self):
        """Test usage over the limit evicts LRU keys down to 80%."""
        cache = CacheManager(max_memory=1000)
        seen = record_events(cache, CacheEvent.MEMORY_PRESSURE, CacheEvent.EVICTED)

        # Each entry: key 2 chars * 2 + 64 overhead + 100 chars * 2 = 268
        for i in range(4):
            await cache.set(f"k{i}", "x" * 100)

        assert seen == [
            (CacheEvent.MEMORY_PRESSURE, (1072, 1000)),
            (CacheEvent.EVICTED, ("k0",)),
            (CacheEvent.EVICTED, ("k1",)),
        ]
        assert await cache.keys() == ["k2", "k3"]
        assert cache.memory_usage() == 536
        assert cache.get_stats().evictions == 2
        assert await cache.store.get("k0") is None

    @pytest.mark.asyncio
    async def test_pressure_follows_strategy(self):
        """Test LFU picks the least used keys under pressure."""
        cache = CacheManager(max_memory=1000, strategy="lfu")

        for i in range(3):
            await cache.set(f"k{i}", "x" * 100)
        await cache.get("k0")
        await cache.set("k3", "x" * 100)

        assert sorted(await cache.keys()) == ["k0", "k3"]

    @pytest.mark.asyncio
    async def test_new_key_is_never_evicted(self):
        """Test a single oversized value is kept."""
        cache = CacheManager(max_memory=100)

        await cache.set("small", 1)
        await cache.set("big", "x" * 500)

        assert await cache.keys() == ["big"]
        assert await cache.get("big") == "x" * 500

    @pytest.mark.asyncio
    async def test_usage_tracks_overwrites_and_deletes(self):
        """Test the estimate follows the index."""
        cache = CacheManager(max_memory=10_000)

        await cache.set("key", "x" * 10)
        assert cache.memory_usage() == 3 * 2 + 64 + 20

        await cache.set("key", 5)
        assert cache.memory_usage() == 3 * 2 + 64 + 8

        await cache.delete("key")
        assert cache.memory_usage() == 0

        await cache.set("key", [1, 2])
        await cache.clear()
        assert cache.memory_usage() == 0


class TestExpiration:
    """Tests for TTL handling."""

    @pytest.mark.asyncio
    async def test_ttl_expiration(self):
        """Test TTL expiration publishes expire then miss."""
        cache = CacheManager()
        seen = record_events(cache, CacheEvent.EXPIRE, CacheEvent.MISS)

        await cache.set("key", "value", ttl=0.05)
        assert await cache.get("key") == "value"

        await asyncio.sleep(0.1)
        assert await cache.get("key") is None

        assert seen == [(CacheEvent.EXPIRE, ("key",)), (CacheEvent.MISS, ("key",))]
        stats = cache.get_stats()
        assert stats.expirations == 1
        assert stats.misses == 1
        assert cache.size() == 0

    @pytest.mark.asyncio
    async def test_default_ttl(self):
        """Test config default TTL applies when none is given."""
        cache = CacheManager(default_ttl=0.05)

        await cache.set("key", "value")
        assert await cache.ttl("key") == pytest.approx(0.05, abs=0.02)

        await asyncio.sleep(0.1)
        assert not await cache.has("key")

    @pytest.mark.asyncio
    async def test_touch(self):
        """Test touch resets expiry."""
        cache = CacheManager()

        await cache.set("key", "value", ttl=0.05)
        assert await cache.touch("key", ttl=10)

        await asyncio.sleep(0.1)
        assert await cache.get("key") == "value"
        assert await cache.ttl("key") > 9

    @pytest.mark.asyncio
    async def test_touch_removes_expiry(self):
        """Test touch with no TTL makes the entry permanent."""
        cache = CacheManager()

        await cache.set("key", "value", ttl=5)
        assert await cache.touch("key")
        assert await cache.ttl("key") is None
        assert not await cache.touch("missing")

    @pytest.mark.asyncio
    async def test_delete_expired_is_not_a_delete(self):
        """Test deleting an expired key counts an expiration only."""
        cache = CacheManager()

        await cache.set("key", "value", ttl=0.05)
        await asyncio.sleep(0.1)

        assert not await cache.delete("key")
        stats = cache.get_stats()
        assert stats.deletes == 0
        assert stats.expirations == 1

    @pytest.mark.asyncio
    async def test_purge_expired(self):
        """Test eager expiry sweep."""
        cache = CacheManager()

        await cache.set("a", 1, ttl=0.05)
        await cache.set("b", 2, ttl=0.05)
        await cache.set("c", 3)
        await asyncio.sleep(0.1)

        assert await cache.purge_expired() == 2
        assert await cache.keys() == ["c"]

    @pytest.mark.asyncio
    async def test_background_sweep(self):
        """Test the cleanup task started by the context manager."""
        async with CacheManager(cleanup_interval=0.05) as cache:
            await cache.set("key", "value", ttl=0.02)
            await asyncio.sleep(0.15)

            assert cache.size() == 0
            assert cache.get_stats().expirations == 1


class TestBatchOperations:
    """Tests for mget/mset/mdel."""

    @pytest.mark.asyncio
    async def test_mset_mget(self):
        """Test batch consistency."""
        cache = CacheManager()

        assert await cache.mset({"a": 1, "b": 2}) == 2
        assert await cache.mget(["a", "b", "c"]) == {"a": 1, "b": 2}

    @pytest.mark.asyncio
    async def test_mdel(self):
        """Test batch delete counts removals."""
        cache = CacheManager()

        await cache.mset({"a": 1, "b": 2, "c": 3})

        assert await cache.mdel(["a", "b", "missing"]) == 2
        assert await cache.keys() == ["c"]

    @pytest.mark.asyncio
    async def test_mset_with_ttl(self):
        """Test batch TTL."""
        cache = CacheManager()

        await cache.mset({"a": 1, "b": 2}, ttl=0.05)
        await asyncio.sleep(0.1)

        assert await cache.mget(["a", "b"]) == {}


class TestGetOrSet:
    """Tests for single-flight get_or_set."""

    @pytest.mark.asyncio
    async def test_sync_factory(self):
        """Test get_or_set with a plain function."""
        cache = CacheManager()
        called = [0]

        def factory():
            called[0] += 1
            return "computed"

        assert await cache.get_or_set("key", factory) == "computed"
        assert await cache.get_or_set("key", factory) == "computed"
        assert called[0] == 1

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_call(self):
        """Test the factory runs once for many concurrent callers."""
        cache = CacheManager()
        called = [0]

        async def factory():
            called[0] += 1
            await asyncio.sleep(0.05)
            return {"id": 1}

        results = await asyncio.gather(*(cache.get_or_set("user:1", factory) for _ in range(10)))

        assert called[0] == 1
        assert all(r == {"id": 1} for r in results)
        assert cache.get_stats().sets == 1

    @pytest.mark.asyncio
    async def test_factory_error_reaches_every_waiter(self):
        """Test a failing factory stores nothing and fails all callers."""
        cache = CacheManager()
        called = [0]

        async def factory():
            called[0] += 1
            await asyncio.sleep(0.02)
            raise ValueError("backend down")

        results = await asyncio.gather(
            *(cache.get_or_set("key", factory) for _ in range(3)),
            return_exceptions=True,
        )

        assert called[0] == 1
        assert all(isinstance(r, ValueError) for r in results)
        assert not await cache.has("key")

        # Next call retries
        assert await cache.get_or_set("key", lambda: "ok") == "ok"

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_flight(self):
        """Test cancelling one waiter leaves the computation running."""
        cache = CacheManager()

        async def factory():
            await asyncio.sleep(0.05)
            return "value"

        owner = asyncio.ensure_future(cache.get_or_set("key", factory))
        await asyncio.sleep(0)
        waiter = asyncio.ensure_future(cache.get_or_set("key", factory))
        await asyncio.sleep(0)
        waiter.cancel()

        assert await owner == "value"
        with pytest.raises(asyncio.CancelledError):
            await waiter
        assert await cache.get("key") == "value"

    @pytest.mark.asyncio
    async def test_slow_store_read_is_shared(self):
        """Test a caller arriving during the store read joins the flight."""
        cache = CacheManager(store=SlowReadStore([0.05, 0.0]))
        called = [0]

        def factory():
            called[0] += 1
            return "computed"

        results = await asyncio.gather(
            cache.get_or_set("key", factory),
            cache.get_or_set("key", factory),
        )

        assert results == ["computed", "computed"]
        assert called[0] == 1
        assert cache.get_stats().sets == 1

    @pytest.mark.asyncio
    async def test_default_ttl_applies_at_resolution(self):
        """Test the stored value gets the TTL in effect when it resolves."""
        cache = CacheManager(default_ttl=60)

        await cache.get_or_set("key", lambda: "value")
        assert await cache.ttl("key") == pytest.approx(60, abs=1)


class TestCacheStats:
    """Tests for cache statistics."""

    @pytest.mark.asyncio
    async def test_hit_rate(self):
        """Test hit rate calculation."""
        cache = CacheManager()

        await cache.set("key", "value")
        await cache.get("key")  # hit
        await cache.get("key")  # hit
        await cache.get("missing")  # miss

        stats = cache.get_stats()
        assert stats.hits == 2
        assert stats.misses == 1
        assert stats.sets == 1
        assert stats.hit_rate == pytest.approx(0.667, abs=0.001)
        assert stats.to_dict()["size"] == 1

    @pytest.mark.asyncio
    async def test_empty_hit_rate(self):
        """Test hit rate with no reads."""
        assert CacheManager().get_stats().hit_rate == 0.0

    @pytest.mark.asyncio
    async def test_stats_are_snapshots(self):
        """Test get_stats returns a copy."""
        cache = CacheManager()

        before = cache.get_stats()
        await cache.set("key", "value")

        assert before.sets == 0
        assert cache.get_stats().sets == 1

    @pytest.mark.asyncio
    async def test_reset_stats(self):
        """Test stats reset."""
        cache = CacheManager()

        await cache.set("key", "value")
        await cache.get("key")

        cache.reset_stats()
        stats = cache.get_stats()

        assert stats.hits == 0
        assert stats.misses == 0
        assert stats.sets == 0
        assert stats.size == 1


class TestStoreFailures:
    """Tests for degraded operation when the store fails."""

    @pytest.mark.asyncio
    async def test_failed_set_rolls_back(self):
        """Test a failed write is not tracked."""
        store = FlakyStore()
        cache = CacheManager(store=store)
        seen = record_events(cache, CacheEvent.ERROR)

        store.fail_set = True
        assert not await cache.set("key", "value")

        assert cache.size() == 0
        stats = cache.get_stats()
        assert stats.errors == 1
        assert stats.sets == 0
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_failed_overwrite_keeps_previous(self):
        """Test a failed overwrite keeps the old entry."""
        store = FlakyStore()
        cache = CacheManager(store=store)

        await cache.set("key", "old")
        store.fail_set = True
        assert not await cache.set("key", "new")
        store.fail_set = False

        assert await cache.get("key") == "old"

    @pytest.mark.asyncio
    async def test_failed_get_is_a_miss(self):
        """Test a store read error degrades to a miss, counted once."""
        store = FlakyStore()
        cache = CacheManager(store=store)

        await cache.set("key", "value")
        store.fail_get = True

        assert await cache.get("key", default="fallback") == "fallback"
        stats = cache.get_stats()
        assert stats.errors == 1
        assert stats.misses == 1
        assert cache.size() == 1


class TestSharedStores:
    """Tests for managers over shared stores."""

    @pytest.mark.asyncio
    async def test_namespace_isolation(self):
        """Test two namespaces over one store."""
        shared = MemoryStore()
        users = CacheManager(store=shared, namespace="users")
        sessions = CacheManager(store=shared, namespace="sessions")

        await users.set("1", "alice")
        await sessions.set("1", "xyz")

        assert await users.get("1") == "alice"
        assert await sessions.get("1") == "xyz"
        assert await users.keys() == ["1"]

        await users.clear()
        assert await users.get("1") is None
        assert await sessions.get("1") == "xyz"

    @pytest.mark.asyncio
    async def test_adopts_values_written_elsewhere(self):
        """Test a value already in the store is picked up with its TTL."""
        shared = MemoryStore()
        await shared.set("key", "value", ttl=30)

        cache = CacheManager(store=shared)

        assert await cache.get("key") == "value"
        assert cache.size() == 1
        assert await cache.ttl("key") == pytest.approx(30, abs=1)
        assert cache.get_stats().hits == 1


class TestLifecycle:
    """Tests for configuration and shutdown."""

    @pytest.mark.parametrize(
        "overrides",
        [
            {"max_size": 0},
            {"max_size": -5},
            {"default_ttl": 0},
            {"cleanup_interval": -1},
            {"strategy": "mru"},
            {"namespace": ""},
            {"max_memory": 0},
        ],
    )
    def test_invalid_config(self, overrides):
        """Test configuration validation."""
        with pytest.raises(ConfigurationError):
            CacheManager(**overrides)

    def test_overrides_replace_config_fields(self):
        """Test keyword overrides on top of a config."""
        cache = CacheManager(CacheConfig(name="base", max_size=5), max_size=2)

        assert cache.config.name == "base"
        assert cache.config.max_size == 2

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        """Test closing twice."""
        cache = CacheManager()

        await cache.set("key", "value")
        await cache.close()
        await cache.close()

    @pytest.mark.asyncio
    async def test_close_leaves_shared_store(self):
        """Test closing a manager does not destroy a store it was given."""
        shared = MemoryStore()
        users = CacheManager(store=shared, namespace="users")
        await users.set("1", "alice")

        await users.close()

        assert await shared.get("users:1") == "alice"

    @pytest.mark.asyncio
    async def test_close_fails_pending_flights(self):
        """Test waiters are released when the cache closes."""
        cache = CacheManager()
        release = asyncio.Event()

        async def factory():
            await release.wait()
            return "late"

        owner = asyncio.ensure_future(cache.get_or_set("key", factory))
        await asyncio.sleep(0)
        waiter = asyncio.ensure_future(cache.get_or_set("key", factory))
        await asyncio.sleep(0)

        await cache.close()
        release.set()

        with pytest.raises(Exception):
            await waiter
        assert await owner == "late"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
