"""Cache module - Core caching functionality.

This module provides the cache manager, entry model and caching decorator.
"""

from kitcache_core.cache.entry import (
    CacheEntry,
    EntryMetadata,
)
from kitcache_core.cache.manager import (
    CacheManager,
    CacheConfig,
    CacheStats,
)
from kitcache_core.cache.decorator import cached

__all__ = [
    "CacheEntry",
    "EntryMetadata",
    "CacheManager",
    "CacheConfig",
    "CacheStats",
    "cached",
]
