"""KitCache Random Policy - Random Eviction.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import random
from typing import Callable, Dict, List, Optional

from kitcache_core.eviction.policy import EvictionPolicy


class RandomPolicy(EvictionPolicy):
    """Uniformly random eviction policy.

    The random source is injected so eviction can be made deterministic;
    the policy never reseeds or replaces the process-wide generator.

    Keys live in a list with an index map so insert, delete and choice
    are all O(1).

    Example:
        rng = random.Random(42)
        policy = RandomPolicy(max_size=100, random_source=rng.random)
    """

    def __init__(
        self,
        max_size: int = 1000,
        random_source: Optional[Callable[[], float]] = None,
    ):
        """Initialize random policy.

        Args:
            max_size: Maximum entries
            random_source: Callable returning a float in [0, 1)
        """
        super().__init__(max_size)
        self._random = random_source or random.random
        self._keys: List[str] = []
        self._positions: Dict[str, int] = {}

    def on_access(self, key: str) -> None:
        self._stats.accesses += 1

    def on_insert(self, key: str) -> None:
        if key in self._positions:
            return
        self._positions[key] = len(self._keys)
        self._keys.append(key)
        self._stats.current_size = len(self._keys)

    def on_delete(self, key: str) -> None:
        index = self._positions.pop(key, None)
        if index is None:
            return

        # Swap the last key into the hole
        last = self._keys.pop()
        if index < len(self._keys):
            self._keys[index] = last
            self._positions[last] = index
        self._stats.current_size = len(self._keys)

    def choose_eviction(self, exclude: Optional[str] = None) -> Optional[str]:
        """Choose a random tracked key other than ``exclude``."""
        skip = self._positions.get(exclude) if exclude is not None else None
        count = len(self._keys) - (skip is not None)
        if count <= 0:
            return None

        index = min(int(self._random() * count), count - 1)
        if skip is not None and index >= skip:
            index += 1
        self._stats.evictions += 1
        return self._keys[index]

    def clear(self) -> None:
        self._keys.clear()
        self._positions.clear()
        self._stats.current_size = 0

    def contains(self, key: str) -> bool:
        return key in self._positions

    def size(self) -> int:
        return len(self._keys)

    def __repr__(self) -> str:
        return f"RandomPolicy(size={len(self._keys)}, max={self.max_size})"


__all__ = ["RandomPolicy"]
