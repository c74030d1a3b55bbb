"""Store module - Storage backends and store decorators."""

from kitcache_core.store.backend import CacheStore, StoreStats
from kitcache_core.store.memory import MemoryStore
from kitcache_core.store.file import FileStore
from kitcache_core.store.redis import RedisConfig, RedisStore
from kitcache_core.store.decorators import (
    StoreDecorator,
    NamespacedStore,
    SerializedStore,
    CompressedStore,
)

__all__ = [
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
]
