"""KitCache FIFO Policy - First In First Out Eviction.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Optional

from kitcache_core.eviction.policy import EvictionPolicy


class FIFOPolicy(EvictionPolicy):
    """First In First Out eviction policy.

    Evicts strictly by insertion order. Accesses (including overwrites of an
    existing key) never change a key's position.
    """

    def __init__(self, max_size: int = 1000):
        super().__init__(max_size)
        self._queue: OrderedDict[str, None] = OrderedDict()

    def on_access(self, key: str) -> None:
        self._stats.accesses += 1

    def on_insert(self, key: str) -> None:
        if key not in self._queue:
            self._queue[key] = None
        self._stats.current_size = len(self._queue)

    def on_delete(self, key: str) -> None:
        if key in self._queue:
            del self._queue[key]
            self._stats.current_size = len(self._queue)

    def choose_eviction(self, exclude: Optional[str] = None) -> Optional[str]:
        """Choose the first inserted key."""
        for key in self._queue:
            if key != exclude:
                self._stats.evictions += 1
                return key
        return None

    def clear(self) -> None:
        self._queue.clear()
        self._stats.current_size = 0

    def contains(self, key: str) -> bool:
        return key in self._queue

    def size(self) -> int:
        return len(self._queue)

    def __repr__(self) -> str:
        return f"FIFOPolicy(size={len(self._queue)}, max={self.max_size})"


__all__ = ["FIFOPolicy"]
