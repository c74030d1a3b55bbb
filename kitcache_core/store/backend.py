"""KitCache Store Backend - Abstract Cache Store Contract.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from kitcache_core.events import CacheEvent, EventEmitter, EventName, Listener

logger = logging.getLogger(__name__)


@dataclass
class StoreStats:
    """Cache store statistics.

    Attributes:
        hits: Reads that found a live value
        misses: Reads that found nothing
        sets: Write operations
        deletes: Successful deletions
        expirations: Entries dropped because their TTL ran out
        errors: Recorded failures
        entry_count: Current entry count, where the store can tell
        last_error: Message of the most recent failure
        last_error_at: When the most recent failure happened
    """

    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    expirations: int = 0
    errors: int = 0
    entry_count: int = 0
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = None

    @property
    def hit_rate(self) -> float:
        """Calculate hit rate."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def record_error(self, error: str) -> None:
        """Record an error."""
        self.errors += 1
        self.last_error = error
        self.last_error_at = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "deletes": self.deletes,
            "expirations": self.expirations,
            "errors": self.errors,
            "entry_count": self.entry_count,
            "hit_rate": self.hit_rate,
            "last_error": self.last_error,
        }


class CacheStore(ABC):
    """Abstract asynchronous cache store.

    Implementations provide different storage media:
    - MemoryStore: In-process dictionary
    - FileStore: File-based persistence
    - RedisStore: Redis backend
    - StoreDecorator subclasses: wrappers around another store

    Backends implement the single-key operations plus ``keys``. Batch and
    TTL operations have working defaults built from those, so every store
    is complete; backends with native support override them.

    Every store keeps the same liveness rule as CacheEntry: an expired
    value is never returned. I/O failures are raised as StoreError.

    Events are published through an owned EventEmitter and can be
    subscribed to with ``on``.
    """

    def __init__(self):
        self._events = EventEmitter()
        self._stats = StoreStats()

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Get live value by key.

        Args:
            key: Cache key

        Returns:
            Stored value or None
        """

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store value.

        Args:
            key: Cache key
            value: Value to store
            ttl: TTL in seconds, None for no expiry
        """

    @abstractmethod
    async def has(self, key: str) -> bool:
        """Check if a live value exists."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete value.

        Returns:
            True if a live value was removed
        """

    @abstractmethod
    async def clear(self) -> int:
        """Clear all values.

        Returns:
            Number cleared
        """

    @abstractmethod
    async def keys(self, pattern: Optional[str] = None) -> List[str]:
        """Get live keys.

        Args:
            pattern: Optional glob pattern

        Returns:
            List of keys
        """

    async def mget(self, keys: Iterable[str]) -> Dict[str, Any]:
        """Get multiple values.

        Args:
            keys: Keys to read

        Returns:
            Dict of key -> value for keys that were found
        """
        result = {}
        for key in keys:
            value = await self.get(key)
            if value is not None:
                result[key] = value
        return result

    async def mset(self, items: Mapping[str, Any], ttl: Optional[float] = None) -> int:
        """Store multiple values.

        Args:
            items: Dict of key -> value
            ttl: TTL for all items

        Returns:
            Number stored
        """
        count = 0
        for key, value in items.items():
            await self.set(key, value, ttl)
            count += 1
        return count

    async def mdel(self, keys: Iterable[str]) -> int:
        """Delete multiple values.

        Returns:
            Number deleted
        """
        count = 0
        for key in keys:
            if await self.delete(key):
                count += 1
        return count

    async def expire(self, key: str, ttl: Optional[float]) -> bool:
        """Reset a key's TTL from now.

        The default rewrites the value with the new TTL.

        Args:
            key: Cache key
            ttl: New TTL in seconds, None removes the expiry

        Returns:
            True if the key exists
        """
        value = await self.get(key)
        if value is None:
            return False
        await self.set(key, value, ttl)
        return True

    async def ttl(self, key: str) -> Optional[float]:
        """Get remaining TTL in seconds.

        Returns:
            Seconds left, or None if absent, non-expiring or unknown
        """
        return None

    async def get_stats(self) -> StoreStats:
        """Get store statistics."""
        return self._stats

    async def destroy(self) -> None:
        """Release resources and listeners."""
        self._events.remove_all_listeners()

    def reset_stats(self) -> None:
        """Reset statistics."""
        self._stats = StoreStats()

    def on(self, event: EventName, listener: Listener) -> Callable[[], None]:
        """Subscribe to a store event."""
        return self._events.on(event, listener)

    def once(self, event: EventName, listener: Listener) -> Callable[[], None]:
        """Subscribe to the next occurrence of a store event."""
        return self._events.once(event, listener)

    def off(self, event: EventName, listener: Listener) -> bool:
        """Unsubscribe from a store event."""
        return self._events.off(event, listener)

    def _emit(self, event: EventName, *args: Any) -> None:
        self._events.emit(event, *args)

    def _record_hit(self, key: str) -> None:
        self._stats.hits += 1
        self._emit(CacheEvent.HIT, key)

    def _record_miss(self, key: str) -> None:
        self._stats.misses += 1
        self._emit(CacheEvent.MISS, key)

    def _record_set(self, key: str, value: Any) -> None:
        self._stats.sets += 1
        self._emit(CacheEvent.SET, key, value)

    def _record_delete(self, key: str) -> None:
        self._stats.deletes += 1
        self._emit(CacheEvent.DELETE, key)

    def _record_expire(self, key: str) -> None:
        self._stats.expirations += 1
        self._emit(CacheEvent.EXPIRE, key)

    def _record_clear(self) -> None:
        self._emit(CacheEvent.CLEAR)

    def _record_error(self, error: Exception) -> None:
        self._stats.record_error(str(error))
        self._emit(CacheEvent.ERROR, error)


__all__ = ["CacheStore", "StoreStats"]
