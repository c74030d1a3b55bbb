"""KitCache - Asynchronous Cache Toolkit.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

A bounded asynchronous cache with:
- Multiple eviction policies (LRU, LFU, FIFO, Random)
- TTL-based expiration with background sweeps
- Single-flight get_or_set
- Multiple storage backends (memory, file, Redis)
- Composable store decorators (namespacing, serialization, compression)
- Cache events, statistics and monitoring

Architecture:
    ┌─────────────────────────────────────────────────────────────────┐
    │                         KitCache System                         │
    ├─────────────────────────────────────────────────────────────────┤
    │  ┌─────────────┐  ┌─────────────┐  ┌─────────────┐             │
    │  │   Manager   │  │   Events    │  │   Entry     │   CACHE     │
    │  │  get/set    │  │  hit/miss   │  │  TTL/meta   │   LAYER     │
    │  └──────┬──────┘  └──────┬──────┘  └──────┬──────┘             │
    │         │                │                │                     │
    │  ┌──────┴────────────────┴────────────────┴──────┐             │
    │  │              Eviction Policies                 │             │
    │  │   ┌─────┐  ┌─────┐  ┌──────┐  ┌────────┐      │   EVICTION  │
    │  │   │ LRU │  │ LFU │  │ FIFO │  │ Random │      │   LAYER     │
    │  │   └─────┘  └─────┘  └──────┘  └────────┘      │             │
    │  └──────────────────────┬────────────────────────┘             │
    │                         │                                       │
    │  ┌──────────────────────┴────────────────────────┐             │
    │  │              Store Decorators                  │             │
    │  │   ┌───────────┐  ┌────────────┐  ┌──────────┐ │  DECORATOR  │
    │  │   │ Namespace │  │ Serialized │  │Compressed│ │   LAYER     │
    │  │   └───────────┘  └────────────┘  └──────────┘ │             │
    │  └──────────────────────┬────────────────────────┘             │
    │                         │                                       │
    │  ┌──────────────────────┴────────────────────────┐             │
    │  │              Storage Backends                  │             │
    │  │   ┌────────┐  ┌────────┐  ┌────────┐         │   STORAGE   │
    │  │   │ Memory │  │  File  │  │ Redis  │         │   LAYER     │
    │  │   └────────┘  └────────┘  └────────┘         │             │
    │  └──────────────────────────────────────────────┘             │
    └─────────────────────────────────────────────────────────────────┘

Example Usage:
    from kitcache_core import CacheManager, FileStore, NamespacedStore

    # Simple in-memory cache
    cache = CacheManager(max_size=1000, default_ttl=300)
    await cache.set("user:1", {"name": "John"})
    user = await cache.get("user:1")

    # Persistent cache
    cache = CacheManager.with_file_store("/var/cache/myapp", strategy="lfu")

    # Namespaced caches over one shared store
    shared = MemoryStore()
    users = CacheManager(store=shared, namespace="users")
    orders = CacheManager(store=shared, namespace="orders")

    # Cache decorator
    @cached(cache, ttl=60)
    async def get_expensive_data(id: str):
        return await fetch_from_database(id)
"""

__version__ = "1.0.0"
__author__ = "BlackRoad OS"

from kitcache_core.errors import (
    CacheError,
    ConfigurationError,
    StoreError,
    SerializationError,
)
from kitcache_core.events import CacheEvent, EventEmitter
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
from kitcache_core.store.backend import (
    CacheStore,
    StoreStats,
)
from kitcache_core.store.memory import MemoryStore
from kitcache_core.store.file import FileStore
from kitcache_core.store.redis import RedisStore, RedisConfig
from kitcache_core.store.decorators import (
    StoreDecorator,
    NamespacedStore,
    SerializedStore,
    CompressedStore,
)
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
from kitcache_core.protocol.serializer import (
    Serializer,
    CompressionType,
    JSONSerializer,
    PickleSerializer,
    MsgPackSerializer,
    RawSerializer,
    get_serializer,
)
from kitcache_core.metrics.collector import (
    MetricsCollector,
    CacheMetrics,
)

__all__ = [
    # Errors
    "CacheError",
    "ConfigurationError",
    "StoreError",
    "SerializationError",
    # Events
    "CacheEvent",
    "EventEmitter",
    # Cache
    "CacheManager",
    "CacheConfig",
    "CacheStats",
    "CacheEntry",
    "EntryMetadata",
    "cached",
    # Storage
    "CacheStore",
    "StoreStats",
    "MemoryStore",
    "FileStore",
    "RedisStore",
    "RedisConfig",
    "StoreDecorator",
    "NamespacedStore",
    "SerializedStore",
    "CompressedStore",
    # Eviction
    "EvictionPolicy",
    "EvictionStats",
    "EvictionStrategy",
    "create_policy",
    "LRUPolicy",
    "LFUPolicy",
    "FIFOPolicy",
    "RandomPolicy",
    # Protocol
    "Serializer",
    "CompressionType",
    "JSONSerializer",
    "PickleSerializer",
    "MsgPackSerializer",
    "RawSerializer",
    "get_serializer",
    # Metrics
    "MetricsCollector",
    "CacheMetrics",
]
