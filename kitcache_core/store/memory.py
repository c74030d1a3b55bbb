"""KitCache Memory Store - In-Memory Storage Backend.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import fnmatch
import logging
import time
from typing import Any, Dict, List, Optional

from kitcache_core.cache.entry import CacheEntry
from kitcache_core.store.backend import CacheStore, StoreStats

logger = logging.getLogger(__name__)


class MemoryStore(CacheStore):
    """In-memory storage backend.

    The simplest and fastest storage option, keeping all data in a dict
    of CacheEntry objects. Best for single-process applications.

    Features:
    - O(1) get/set/delete operations
    - Lazy expiry on access
    - Native expire/ttl
    - Pattern-based key scanning
    - Memory tracking

    The store itself is unbounded; capacity is enforced by the
    CacheManager in front of it.

    Example:
        store = MemoryStore()
        await store.set("key", "data", ttl=60)
        value = await store.get("key")
    """

    def __init__(self):
        super().__init__()
        self._data: Dict[str, CacheEntry] = {}

    def _live_entry(self, key: str, now: Optional[float] = None) -> Optional[CacheEntry]:
        """Get entry if live, dropping it when expired."""
        entry = self._data.get(key)
        if entry is None:
            return None
        if not entry.is_live(now):
            del self._data[key]
            self._stats.entry_count = len(self._data)
            self._record_expire(key)
            return None
        return entry

    async def get(self, key: str) -> Optional[Any]:
        entry = self._live_entry(key)
        if entry is None:
            self._record_miss(key)
            return None

        entry.touch()
        self._record_hit(key)
        return entry.value

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        self._data[key] = CacheEntry.create(key, value, ttl)
        self._stats.entry_count = len(self._data)
        self._record_set(key, value)

    async def has(self, key: str) -> bool:
        return self._live_entry(key) is not None

    async def delete(self, key: str) -> bool:
        if self._live_entry(key) is None:
            return False

        del self._data[key]
        self._stats.entry_count = len(self._data)
        self._record_delete(key)
        return True

    async def clear(self) -> int:
        count = len(self._data)
        self._data.clear()
        self._stats.entry_count = 0
        self._record_clear()
        return count

    async def keys(self, pattern: Optional[str] = None) -> List[str]:
        self.purge_expired()
        if pattern is None:
            return list(self._data.keys())
        return [k for k in self._data.keys() if fnmatch.fnmatch(k, pattern)]

    async def expire(self, key: str, ttl: Optional[float]) -> bool:
        entry = self._live_entry(key)
        if entry is None:
            return False
        entry.expire_in(ttl)
        return True

    async def ttl(self, key: str) -> Optional[float]:
        entry = self._live_entry(key)
        if entry is None:
            return None
        return entry.remaining_ttl()

    async def get_stats(self) -> StoreStats:
        self._stats.entry_count = len(self._data)
        return self._stats

    async def destroy(self) -> None:
        self._data.clear()
        self._stats.entry_count = 0
        await super().destroy()

    def purge_expired(self) -> int:
        """Remove every expired entry.

        Returns:
            Number removed
        """
        now = time.time()
        expired = [k for k, e in self._data.items() if not e.is_live(now)]
        for key in expired:
            del self._data[key]
            self._record_expire(key)

        if expired:
            self._stats.entry_count = len(self._data)
            logger.debug(f"Purged {len(expired)} expired entries from memory")
        return len(expired)

    def size(self) -> int:
        """Get stored entry count, including not yet purged expired entries."""
        return len(self._data)

    def memory_usage(self) -> int:
        """Get approximate memory usage.

        Returns:
            Size in bytes
        """
        return sum(e.metadata.size_bytes for e in self._data.values())

    def __repr__(self) -> str:
        return f"MemoryStore(entries={len(self._data)})"


__all__ = ["MemoryStore"]
