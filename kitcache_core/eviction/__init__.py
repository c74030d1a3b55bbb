"""Eviction module - Cache eviction policies."""

from kitcache_core.eviction.policy import (
    EvictionPolicy,
    EvictionStats,
    EvictionStrategy,
    create_policy,
)
from kitcache_core.eviction.lru import LRUPolicy
from kitcache_core.eviction.lfu import LFUPolicy
from kitcache_core.eviction.fifo import FIFOPolicy
from kitcache_core.eviction.random import RandomPolicy

__all__ = [
    "EvictionPolicy",
    "EvictionStats",
    "EvictionStrategy",
    "create_policy",
    "LRUPolicy",
    "LFUPolicy",
    "FIFOPolicy",
    "RandomPolicy",
]
