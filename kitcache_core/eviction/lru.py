"""KitCache LRU Policy - Least Recently Used Eviction.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Optional

from kitcache_core.eviction.policy import EvictionPolicy


class LRUPolicy(EvictionPolicy):
    """Least Recently Used eviction policy.

    Keeps keys in recency order in an OrderedDict: inserts and accesses
    move a key to the most-recently-used end, evictions come from the
    least-recently-used end. The order is total, so there are no ties.

    Example:
        policy = LRUPolicy(max_size=1000)
        policy.on_insert("key1")
        policy.on_access("key1")
        evict_key = policy.choose_eviction()
    """

    def __init__(self, max_size: int = 1000):
        super().__init__(max_size)
        self._order: OrderedDict[str, None] = OrderedDict()

    def on_access(self, key: str) -> None:
        """Record key access (move to MRU end)."""
        self._stats.accesses += 1
        if key in self._order:
            self._order.move_to_end(key)

    def on_insert(self, key: str) -> None:
        """Record key insertion."""
        self._order[key] = None
        self._order.move_to_end(key)
        self._stats.current_size = len(self._order)

    def on_delete(self, key: str) -> None:
        """Record key deletion."""
        if key in self._order:
            del self._order[key]
            self._stats.current_size = len(self._order)

    def choose_eviction(self, exclude: Optional[str] = None) -> Optional[str]:
        """Choose LRU key to evict.

        Returns:
            Oldest key other than ``exclude``, or None
        """
        for key in self._order:
            if key != exclude:
                self._stats.evictions += 1
                return key
        return None

    def clear(self) -> None:
        """Clear all tracked keys."""
        self._order.clear()
        self._stats.current_size = 0

    def contains(self, key: str) -> bool:
        return key in self._order

    def size(self) -> int:
        return len(self._order)

    def peek_lru(self) -> Optional[str]:
        """Peek at LRU key without counting an eviction."""
        if not self._order:
            return None
        return next(iter(self._order))

    def peek_mru(self) -> Optional[str]:
        """Peek at MRU key."""
        if not self._order:
            return None
        return next(reversed(self._order))

    def __repr__(self) -> str:
        return f"LRUPolicy(size={len(self._order)}, max={self.max_size})"


__all__ = ["LRUPolicy"]
