"""KitCache Eviction Policy - Abstract Eviction Interface.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Union

from kitcache_core.errors import ConfigurationError

logger = logging.getLogger(__name__)


class EvictionStrategy(str, Enum):
    """Built-in eviction strategies."""

    LRU = "lru"        # Least recently used
    LFU = "lfu"        # Least frequently used
    FIFO = "fifo"      # Insertion order
    RANDOM = "random"  # Uniformly random

    @classmethod
    def parse(cls, value: Union["EvictionStrategy", str]) -> "EvictionStrategy":
        """Resolve a strategy from its enum member or name.

        Raises:
            ConfigurationError: If the strategy is unknown
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            choices = ", ".join(s.value for s in cls)
            raise ConfigurationError(
                f"Unknown eviction strategy {value!r} (expected one of: {choices})"
            ) from None


@dataclass
class EvictionStats:
    """Eviction policy statistics.

    Attributes:
        evictions: Number of eviction choices made
        accesses: Number of accesses tracked
        current_size: Current tracked entries
        max_size: Maximum entries
    """

    evictions: int = 0
    accesses: int = 0
    current_size: int = 0
    max_size: int = 0

    @property
    def eviction_rate(self) -> float:
        """Get eviction rate."""
        return self.evictions / self.accesses if self.accesses > 0 else 0.0


class EvictionPolicy(ABC):
    """Abstract base for eviction policies.

    A policy only tracks keys and decides which one should leave when the
    cache is over capacity. It never sees values and never removes entries
    from storage; the cache manager does that after asking.

    Implementations:
    - LRU: Least Recently Used
    - LFU: Least Frequently Used
    - FIFO: First In First Out
    - Random: Random eviction

    Example:
        policy = LRUPolicy(max_size=1000)
        policy.on_insert("key1")
        policy.on_access("key1")
        evict_key = policy.choose_eviction()
    """

    def __init__(self, max_size: int = 1000):
        """Initialize policy.

        Args:
            max_size: Maximum entries to track
        """
        self.max_size = max_size
        self._stats = EvictionStats(max_size=max_size)

    @abstractmethod
    def on_access(self, key: str) -> None:
        """Record key access.

        Args:
            key: Accessed key
        """

    @abstractmethod
    def on_insert(self, key: str) -> None:
        """Record key insertion.

        Args:
            key: Inserted key
        """

    @abstractmethod
    def on_delete(self, key: str) -> None:
        """Record key deletion.

        Args:
            key: Deleted key
        """

    @abstractmethod
    def choose_eviction(self, exclude: Optional[str] = None) -> Optional[str]:
        """Choose key to evict.

        The key stays tracked until ``on_delete`` is called for it.

        Args:
            exclude: Key that must not be chosen

        Returns:
            Key to evict or None
        """

    def choose_evictions(self, count: int, exclude: Optional[str] = None) -> List[str]:
        """Choose and untrack multiple keys.

        Args:
            count: Number of keys
            exclude: Key that must not be chosen

        Returns:
            List of keys to evict
        """
        keys = []
        for _ in range(count):
            key = self.choose_eviction(exclude)
            if key is None:
                break
            keys.append(key)
            self.on_delete(key)
        return keys

    @abstractmethod
    def clear(self) -> None:
        """Clear all tracked keys."""

    @abstractmethod
    def contains(self, key: str) -> bool:
        """Check if key is tracked."""

    @abstractmethod
    def size(self) -> int:
        """Get number of tracked keys."""

    def get_stats(self) -> EvictionStats:
        """Get eviction statistics.

        Returns:
            EvictionStats instance
        """
        self._stats.current_size = self.size()
        return self._stats

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, key: str) -> bool:
        return self.contains(key)


def create_policy(
    strategy: Union[EvictionStrategy, str] = EvictionStrategy.LRU,
    max_size: int = 1000,
    random_source: Optional[Callable[[], float]] = None,
) -> EvictionPolicy:
    """Build a policy for a strategy name.

    Args:
        strategy: Strategy enum member or name
        max_size: Maximum entries
        random_source: Random number source for the random strategy

    Returns:
        EvictionPolicy instance

    Raises:
        ConfigurationError: If the strategy is unknown
    """
    from kitcache_core.eviction.fifo import FIFOPolicy
    from kitcache_core.eviction.lfu import LFUPolicy
    from kitcache_core.eviction.lru import LRUPolicy
    from kitcache_core.eviction.random import RandomPolicy

    strategy = EvictionStrategy.parse(strategy)
    if strategy is EvictionStrategy.LFU:
        return LFUPolicy(max_size)
    if strategy is EvictionStrategy.FIFO:
        return FIFOPolicy(max_size)
    if strategy is EvictionStrategy.RANDOM:
        return RandomPolicy(max_size, random_source=random_source)
    return LRUPolicy(max_size)


__all__ = ["EvictionPolicy", "EvictionStats", "EvictionStrategy", "create_policy"]
