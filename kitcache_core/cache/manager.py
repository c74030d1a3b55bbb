"""KitCache Manager - Main Cache Implementation.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import asyncio
import dataclasses
import fnmatch
import inspect
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Union

from kitcache_core.cache.entry import CacheEntry, estimate_size
from kitcache_core.errors import CacheError, ConfigurationError
from kitcache_core.events import CacheEvent, EventEmitter, EventName, Listener
from kitcache_core.eviction.policy import EvictionPolicy, EvictionStrategy, create_policy
from kitcache_core.store.backend import CacheStore
from kitcache_core.store.decorators import NamespacedStore
from kitcache_core.store.memory import MemoryStore

logger = logging.getLogger(__name__)

_MISSING = object()

# Fraction of max_memory to evict down to under memory pressure
MEMORY_TARGET_RATIO = 0.8


@dataclass
class CacheConfig:
    """Cache configuration.

    Attributes:
        name: Cache name, used in logs
        max_size: Maximum entries
        default_ttl: Default TTL in seconds, None for no expiry
        strategy: Eviction strategy (enum member or name)
        cleanup_interval: Seconds between background expiry sweeps, None disables
        namespace: Key namespace inside the store
        max_memory: Estimated byte budget for cached values, None for no limit
    """

    name: str = "cache"
    max_size: int = 1000
    default_ttl: Optional[float] = None
    strategy: Union[EvictionStrategy, str] = EvictionStrategy.LRU
    cleanup_interval: Optional[float] = None
    namespace: Optional[str] = None
    max_memory: Optional[int] = None

    def __post_init__(self):
        if isinstance(self.max_size, bool) or not isinstance(self.max_size, int):
            raise ConfigurationError(f"max_size must be an integer, got {self.max_size!r}")
        if self.max_size <= 0:
            raise ConfigurationError(f"max_size must be positive, got {self.max_size}")
        if self.default_ttl is not None and self.default_ttl <= 0:
            raise ConfigurationError(f"default_ttl must be positive, got {self.default_ttl}")
        if self.cleanup_interval is not None and self.cleanup_interval <= 0:
            raise ConfigurationError(
                f"cleanup_interval must be positive, got {self.cleanup_interval}"
            )
        if self.namespace is not None and not self.namespace:
            raise ConfigurationError("namespace must be a non-empty string")
        if self.max_memory is not None and self.max_memory <= 0:
            raise ConfigurationError(f"max_memory must be positive, got {self.max_memory}")
        self.strategy = EvictionStrategy.parse(self.strategy)


@dataclass
class CacheStats:
    """Cache statistics.

    Counters are lifetime totals and only go back to zero on reset.

    Attributes:
        hits: Number of cache hits
        misses: Number of cache misses
        sets: Number of successful set operations
        deletes: Number of entries deleted
        evictions: Number of capacity evictions
        expirations: Number of entries dropped after their TTL
        errors: Number of store failures
        size: Current entry count
    """

    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    evictions: int = 0
    expirations: int = 0
    errors: int = 0
    size: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate hit rate."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    @property
    def total_operations(self) -> int:
        """Get total operations."""
        return self.hits + self.misses + self.sets + self.deletes

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "deletes": self.deletes,
            "evictions": self.evictions,
            "expirations": self.expirations,
            "errors": self.errors,
            "size": self.size,
            "hit_rate": self.hit_rate,
            "total_operations": self.total_operations,
        }


class CacheManager:
    """Bounded asynchronous cache over a pluggable store.

    The manager keeps a key index with expiry times and an eviction policy;
    values live in the store. Index and policy updates for an operation all
    happen before its first store call, so concurrent tasks on one event
    loop never push the index over ``max_size``.

    Features:
    - LRU, LFU, FIFO and random eviction
    - Optional estimated memory budget (max_memory)
    - TTL-based expiration (lazy, plus optional background sweeps)
    - Single-flight get_or_set
    - Batch operations
    - Statistics and events
    - Namespacing over shared stores

    Store failures never reach the caller: they are counted, published as
    ``error`` events and the operation degrades to a miss or a no-op.

    Example:
        cache = CacheManager(max_size=1000, default_ttl=300)

        await cache.set("key", "value", ttl=60)
        value = await cache.get("key")

        user = await cache.get_or_set("user:1", lambda: load_user(1))

        async with CacheManager(cleanup_interval=30) as cache:
            ...
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        store: Optional[CacheStore] = None,
        eviction: Optional[EvictionPolicy] = None,
        random_source: Optional[Callable[[], float]] = None,
        owns_store: Optional[bool] = None,
        **overrides: Any,
    ):
        """Initialize cache.

        Args:
            config: Cache configuration
            store: Storage backend (a new MemoryStore by default)
            eviction: Prebuilt eviction policy, overrides config.strategy
            random_source: Random number source for random eviction
            owns_store: Destroy the store on close; defaults to True only
                when the manager created the store
            **overrides: CacheConfig fields to set or replace

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        if config is None:
            config = CacheConfig(**overrides)
        elif overrides:
            config = dataclasses.replace(config, **overrides)
        self.config = config

        if owns_store is None:
            owns_store = store is None
        self._owns_store = owns_store

        store = store if store is not None else MemoryStore()
        if config.namespace:
            store = NamespacedStore(store, config.namespace)
        self._store = store

        self._policy = eviction or create_policy(
            config.strategy, config.max_size, random_source=random_source
        )
        self._index: Dict[str, CacheEntry] = {}
        self._memory = 0
        self._stats = CacheStats()
        self._inflight: Dict[str, asyncio.Future] = {}
        self._events = EventEmitter()

        self._last_store_error: Optional[BaseException] = None
        self._unsubscribe_store = self._store.on(CacheEvent.ERROR, self._on_store_error)

        self._cleanup_task: Optional[asyncio.Task] = None
        self._closed = False

    @classmethod
    def with_file_store(cls, path: str, serializer: Optional[Any] = None, **kwargs: Any) -> "CacheManager":
        """Create a cache persisted under a directory.

        Args:
            path: Cache directory
            serializer: Entry serializer for the file store
            **kwargs: CacheManager arguments

        Returns:
            CacheManager instance
        """
        from kitcache_core.store.file import FileStore

        kwargs.setdefault("owns_store", True)
        return cls(store=FileStore(path, serializer=serializer), **kwargs)

    @classmethod
    def with_redis_store(
        cls,
        redis_config: Optional[Any] = None,
        client: Optional[Any] = None,
        **kwargs: Any,
    ) -> "CacheManager":
        """Create a cache backed by Redis.

        Args:
            redis_config: RedisConfig instance
            client: Prebuilt async Redis client
            **kwargs: CacheManager arguments

        Returns:
            CacheManager instance
        """
        from kitcache_core.store.redis import RedisStore

        kwargs.setdefault("owns_store", True)
        return cls(store=RedisStore(redis_config, client=client), **kwargs)

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def store(self) -> CacheStore:
        return self._store

    @property
    def policy(self) -> EvictionPolicy:
        return self._policy

    # Lifecycle

    def start(self) -> None:
        """Start the background expiry sweep.

        Must be called from a running event loop. Does nothing when
        ``cleanup_interval`` is not set or the sweep is already running.
        """
        if self.config.cleanup_interval is None or self._cleanup_task is not None:
            return

        self._cleanup_task = asyncio.get_running_loop().create_task(
            self._cleanup_loop(), name=f"Cache-{self.name}-cleanup"
        )
        logger.info(f"Cache {self.name} started (sweep every {self.config.cleanup_interval}s)")

    async def close(self) -> None:
        """Stop background work and release the store.

        Pending get_or_set waiters are failed with CacheError. Safe to call
        more than once.
        """
        if self._closed:
            return
        self._closed = True

        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None

        for key, future in list(self._inflight.items()):
            if not future.done():
                future.set_exception(CacheError(f"Cache {self.name} closed", key=key))
                # Mark retrieved so an unawaited flight does not warn
                future.exception()
        self._inflight.clear()

        self._unsubscribe_store()
        try:
            if self._owns_store:
                await self._store.destroy()
            elif self.config.namespace:
                # Our own wrapper around a shared store
                self._store.detach()
        except Exception as e:
            logger.error(f"Cache {self.name} failed to release store: {e}")

        self._events.remove_all_listeners()
        logger.info(f"Cache {self.name} closed")

    async def __aenter__(self) -> "CacheManager":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # Single-key operations

    async def get(self, key: str, default: Any = None) -> Any:
        """Get value from cache.

        Args:
            key: Cache key
            default: Default value if not found

        Returns:
            Cached value or default
        """
        entry = self._index.get(key)

        if entry is not None and not entry.is_live():
            await self._expire(key)
            self._record_miss(key)
            return default

        try:
            value = await self._store.get(key)
        except Exception as e:
            self._store_failed("get", key, e)
            self._record_miss(key)
            return default

        if value is None:
            # Store lost the value; stop tracking it
            if entry is not None and self._index.get(key) is entry:
                self._untrack(key)
            self._record_miss(key)
            return default

        if entry is None:
            await self._adopt(key, value)
        elif self._index.get(key) is entry:
            entry.touch()
            self._policy.on_access(key)

        self._stats.hits += 1
        self._emit(CacheEvent.HIT, key)
        return value

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> bool:
        """Set value in cache.

        Args:
            key: Cache key
            value: Value to cache
            ttl: TTL in seconds, defaults to config.default_ttl

        Returns:
            True if the value was stored
        """
        ttl = ttl if ttl is not None else self.config.default_ttl
        now = time.time()

        entry = self._new_entry(key, value, ttl, now)
        previous = self._index.get(key)
        if previous is not None and previous.is_live(now):
            self._track(entry)
            self._policy.on_access(key)
            dropped: List[str] = []
        else:
            if previous is not None:
                self._forget_expired(key)
                previous = None
            dropped = self._admit(entry, now)
        dropped.extend(self._relieve_memory_pressure(keep=key))

        await self._drop_from_store(dropped)

        try:
            await self._store.set(key, value, ttl)
        except Exception as e:
            if self._index.get(key) is entry:
                if previous is not None:
                    self._track(previous)
                else:
                    self._untrack(key)
            self._store_failed("set", key, e)
            return False

        self._stats.sets += 1
        self._emit(CacheEvent.SET, key, value)
        return True

    async def has(self, key: str) -> bool:
        """Check if a live value exists.

        Does not count as a hit or miss.
        """
        entry = self._index.get(key)
        if entry is not None and not entry.is_live():
            await self._expire(key)
            return False

        try:
            present = await self._store.has(key)
        except Exception as e:
            self._store_failed("has", key, e)
            return False

        if entry is not None and self._index.get(key) is entry:
            if present:
                self._policy.on_access(key)
            else:
                self._untrack(key)
        return present

    async def delete(self, key: str) -> bool:
        """Delete key from cache.

        Returns:
            True if a live value was removed
        """
        entry = self._index.get(key)
        if entry is not None and not entry.is_live():
            await self._expire(key)
            return False

        if entry is not None:
            self._untrack(key)

        try:
            removed = await self._store.delete(key)
        except Exception as e:
            self._store_failed("delete", key, e)
            return False

        if removed:
            self._stats.deletes += 1
            self._emit(CacheEvent.DELETE, key)
        return removed

    async def clear(self) -> int:
        """Clear all entries.

        Statistics are kept.

        Returns:
            Number of entries cleared
        """
        tracked = len(self._index)
        self._index.clear()
        self._memory = 0
        self._policy.clear()

        try:
            count = await self._store.clear()
        except Exception as e:
            self._store_failed("clear", None, e)
            count = tracked

        self._emit(CacheEvent.CLEAR)
        logger.debug(f"Cache {self.name} cleared {count} entries")
        return count

    async def touch(self, key: str, ttl: Optional[float] = None) -> bool:
        """Reset a key's expiry from now.

        Value and recency are unchanged.

        Args:
            key: Cache key
            ttl: New TTL in seconds, None for no expiry

        Returns:
            True if the key was live
        """
        entry = self._index.get(key)
        if entry is None:
            return False
        if not entry.is_live():
            await self._expire(key)
            return False

        previous_expiry = entry.expires_at
        entry.expire_in(ttl)

        try:
            found = await self._store.expire(key, ttl)
        except Exception as e:
            entry.expires_at = previous_expiry
            self._store_failed("expire", key, e)
            return False

        if not found and self._index.get(key) is entry:
            self._untrack(key)
        return found

    async def ttl(self, key: str) -> Optional[float]:
        """Get remaining TTL.

        Returns:
            Seconds left, None when absent or non-expiring
        """
        entry = self._index.get(key)
        if entry is None:
            return None
        if not entry.is_live():
            await self._expire(key)
            return None
        return entry.remaining_ttl()

    async def keys(self, pattern: Optional[str] = None) -> List[str]:
        """Get live keys.

        Args:
            pattern: Optional glob pattern

        Returns:
            List of keys
        """
        await self.purge_expired()
        if pattern is None:
            return list(self._index.keys())
        return [k for k in self._index.keys() if fnmatch.fnmatch(k, pattern)]

    # Batch operations

    async def mget(self, keys: Iterable[str]) -> Dict[str, Any]:
        """Get multiple values.

        Args:
            keys: Keys to read

        Returns:
            Dict of key -> value, absent keys omitted
        """
        keys = list(dict.fromkeys(keys))
        values = await asyncio.gather(*(self.get(k, _MISSING) for k in keys))
        return {k: v for k, v in zip(keys, values) if v is not _MISSING}

    async def mset(self, items: Mapping[str, Any], ttl: Optional[float] = None) -> int:
        """Set multiple values.

        Args:
            items: Dict of key -> value
            ttl: TTL for all items

        Returns:
            Number of items set
        """
        results = await asyncio.gather(*(self.set(k, v, ttl) for k, v in items.items()))
        return sum(1 for stored in results if stored)

    async def mdel(self, keys: Iterable[str]) -> int:
        """Delete multiple keys.

        Returns:
            Number deleted
        """
        keys = list(dict.fromkeys(keys))
        results = await asyncio.gather(*(self.delete(k) for k in keys))
        return sum(1 for removed in results if removed)

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Union[Any, Awaitable[Any]]],
        ttl: Optional[float] = None,
    ) -> Any:
        """Get value or compute it once.

        Concurrent callers for the same missing key share a single factory
        call. A waiter that is cancelled does not cancel the computation.
        If the factory raises, nothing is stored and every waiter receives
        the same exception.

        Args:
            key: Cache key
            factory: Sync or async callable producing the value
            ttl: TTL for the new value

        Returns:
            Cached or computed value
        """
        pending = self._inflight.get(key)
        if pending is not None:
            return await asyncio.shield(pending)

        # The flight covers the store read as well as the factory
        future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            value = await self.get(key, _MISSING)
            if value is _MISSING:
                value = factory()
                if inspect.isawaitable(value):
                    value = await value
                await self.set(key, value, ttl)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            if not future.done():
                future.set_exception(e)
                future.exception()
            raise
        finally:
            if self._inflight.get(key) is future:
                del self._inflight[key]

        if not future.done():
            future.set_result(value)
        return value

    # Expiry

    async def purge_expired(self) -> int:
        """Remove every expired entry.

        Returns:
            Number removed
        """
        expired = self._collect_expired(time.time())
        await self._drop_from_store(expired)
        if expired:
            logger.debug(f"Cache {self.name} purged {len(expired)} expired entries")
        return len(expired)

    async def _cleanup_loop(self) -> None:
        """Background cleanup loop."""
        while True:
            await asyncio.sleep(self.config.cleanup_interval)
            try:
                await self.purge_expired()
            except Exception as e:
                logger.error(f"Cleanup error in cache {self.name}: {e}")

    # Stats and events

    def get_stats(self) -> CacheStats:
        """Get a snapshot of cache statistics."""
        return dataclasses.replace(self._stats, size=len(self._index))

    def reset_stats(self) -> None:
        """Reset statistics."""
        self._stats = CacheStats()

    def size(self) -> int:
        """Get tracked entry count."""
        return len(self._index)

    def memory_usage(self) -> int:
        """Get estimated bytes held by tracked entries."""
        return self._memory

    def on(self, event: EventName, listener: Listener) -> Callable[[], None]:
        """Subscribe to a cache event.

        Returns:
            Function that removes the listener
        """
        return self._events.on(event, listener)

    def once(self, event: EventName, listener: Listener) -> Callable[[], None]:
        """Subscribe to the next occurrence of a cache event."""
        return self._events.once(event, listener)

    def off(self, event: EventName, listener: Listener) -> bool:
        """Unsubscribe from a cache event."""
        return self._events.off(event, listener)

    # Internals

    def _emit(self, event: EventName, *args: Any) -> None:
        self._events.emit(event, *args)

    def _record_miss(self, key: str) -> None:
        self._stats.misses += 1
        self._emit(CacheEvent.MISS, key)

    def _on_store_error(self, error: BaseException) -> None:
        self._last_store_error = error
        self._stats.errors += 1
        self._emit(CacheEvent.ERROR, error)

    def _store_failed(self, action: str, key: Optional[str], error: Exception) -> None:
        """Count a store failure unless the store already reported it."""
        target = f" for {key!r}" if key is not None else ""
        logger.error(f"Cache {self.name} store {action} failed{target}: {error}")
        if error is not self._last_store_error:
            self._on_store_error(error)

    def _new_entry(self, key: str, value: Any, ttl: Optional[float], now: float) -> CacheEntry:
        entry = CacheEntry.create(key, None, ttl, now)
        entry.metadata.size_bytes = estimate_size(key, value)
        return entry

    def _track(self, entry: CacheEntry) -> None:
        """Put an entry in the index, replacing any entry for its key."""
        self._discard(entry.key)
        self._index[entry.key] = entry
        self._memory += entry.metadata.size_bytes

    def _discard(self, key: str) -> None:
        entry = self._index.pop(key, None)
        if entry is not None:
            self._memory -= entry.metadata.size_bytes

    def _untrack(self, key: str) -> None:
        self._discard(key)
        self._policy.on_delete(key)

    def _forget_expired(self, key: str) -> None:
        self._untrack(key)
        self._stats.expirations += 1
        self._emit(CacheEvent.EXPIRE, key)

    def _collect_expired(self, now: float) -> List[str]:
        expired = [k for k, e in self._index.items() if not e.is_live(now)]
        for key in expired:
            self._forget_expired(key)
        return expired

    def _admit(self, entry: CacheEntry, now: float) -> List[str]:
        """Track a new key, making room first.

        Returns:
            Keys removed from the index that must be removed from the store
        """
        dropped: List[str] = []
        if len(self._index) >= self.config.max_size:
            dropped.extend(self._collect_expired(now))

        overflow = len(self._index) - self.config.max_size + 1
        if overflow > 0:
            for victim in self._policy.choose_evictions(overflow):
                self._evict(victim)
                dropped.append(victim)

        self._track(entry)
        self._policy.on_insert(entry.key)
        return dropped

    def _evict(self, victim: str) -> None:
        self._discard(victim)
        self._stats.evictions += 1
        self._emit(CacheEvent.EVICTED, victim)
        logger.debug(f"Cache {self.name} evicted {victim!r}")

    def _relieve_memory_pressure(self, keep: str) -> List[str]:
        """Evict down to the memory target once usage passes max_memory.

        The key just written is never chosen.

        Returns:
            Evicted keys that must be removed from the store
        """
        limit = self.config.max_memory
        if limit is None or self._memory <= limit:
            return []

        logger.warning(f"Cache {self.name} memory pressure: {self._memory}/{limit} bytes")
        self._emit(CacheEvent.MEMORY_PRESSURE, self._memory, limit)

        target = int(limit * MEMORY_TARGET_RATIO)
        evicted: List[str] = []
        while self._memory > target:
            victims = self._policy.choose_evictions(1, exclude=keep)
            if not victims:
                break
            self._evict(victims[0])
            evicted.append(victims[0])
        return evicted

    async def _adopt(self, key: str, value: Any) -> None:
        """Start tracking a value found in the store but not in the index.

        The expiry comes from the store; when the store cannot tell, the
        entry is tracked without one and the store's own expiry applies.
        """
        try:
            remaining = await self._store.ttl(key)
        except Exception as e:
            self._store_failed("ttl", key, e)
            remaining = None

        if key in self._index:
            self._policy.on_access(key)
            return

        now = time.time()
        dropped = self._admit(self._new_entry(key, value, remaining, now), now)
        dropped.extend(self._relieve_memory_pressure(keep=key))
        await self._drop_from_store(dropped)

    async def _expire(self, key: str) -> None:
        self._forget_expired(key)
        await self._drop_from_store([key])

    async def _drop_from_store(self, keys: List[str]) -> None:
        if not keys:
            return
        try:
            await self._store.mdel(keys)
        except Exception as e:
            self._store_failed("delete", keys[0] if len(keys) == 1 else None, e)

    def __len__(self) -> int:
        """Get entry count."""
        return self.size()

    def __repr__(self) -> str:
        return (
            f"CacheManager(name={self.name!r}, entries={len(self._index)}, "
            f"max={self.config.max_size}, strategy={self.config.strategy.value})"
        )


__all__ = ["CacheManager", "CacheConfig", "CacheStats"]
