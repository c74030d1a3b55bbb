"""KitCache Store Decorators - Namespacing, Serialization and Compression.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import base64
import fnmatch
import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from kitcache_core.errors import SerializationError
from kitcache_core.events import CacheEvent
from kitcache_core.protocol.serializer import (
    CompressionType,
    JSONSerializer,
    Serializer,
    compress_bytes,
    compress_payload,
    decompress_bytes,
    decompress_payload,
    is_compressed,
)
from kitcache_core.store.backend import CacheStore, StoreStats

logger = logging.getLogger(__name__)

# Events whose first argument is a cache key
KEY_EVENTS = (
    CacheEvent.HIT,
    CacheEvent.MISS,
    CacheEvent.SET,
    CacheEvent.DELETE,
    CacheEvent.EVICTED,
    CacheEvent.EXPIRE,
)


class StoreDecorator(CacheStore):
    """Store that wraps another store.

    Forwards every operation to the wrapped store and re-emits every event
    the wrapped store publishes. Subclasses override the operations they
    transform. Decorators nest in any order:

        store = SerializedStore(CompressedStore(NamespacedStore(MemoryStore(), "app")))
    """

    def __init__(self, store: CacheStore):
        """Initialize decorator.

        Args:
            store: Wrapped store
        """
        super().__init__()
        self.store = store
        self._unsubscribers: List[Callable[[], None]] = [
            store.on(event, self._forwarder(event)) for event in CacheEvent
        ]

    def _forwarder(self, event: CacheEvent) -> Callable[..., None]:
        def forward(*args: Any) -> None:
            self._on_store_event(event, *args)

        return forward

    def _on_store_event(self, event: CacheEvent, *args: Any) -> None:
        """Handle an event from the wrapped store."""
        self._emit(event, *args)

    def _report(self, key: str, error: Exception) -> None:
        """Record a recovered failure and publish it as an error event."""
        logger.warning(f"{type(self).__name__} recovered from failure on {key!r}: {error}")
        if not isinstance(error, SerializationError):
            error = SerializationError(str(error), key=key)
        self._record_error(error)

    async def get(self, key: str) -> Optional[Any]:
        return await self.store.get(key)

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        await self.store.set(key, value, ttl)

    async def has(self, key: str) -> bool:
        return await self.store.has(key)

    async def delete(self, key: str) -> bool:
        return await self.store.delete(key)

    async def clear(self) -> int:
        return await self.store.clear()

    async def keys(self, pattern: Optional[str] = None) -> List[str]:
        return await self.store.keys(pattern)

    async def mget(self, keys: Iterable[str]) -> Dict[str, Any]:
        return await self.store.mget(keys)

    async def mset(self, items: Mapping[str, Any], ttl: Optional[float] = None) -> int:
        return await self.store.mset(items, ttl)

    async def mdel(self, keys: Iterable[str]) -> int:
        return await self.store.mdel(keys)

    async def expire(self, key: str, ttl: Optional[float]) -> bool:
        return await self.store.expire(key, ttl)

    async def ttl(self, key: str) -> Optional[float]:
        return await self.store.ttl(key)

    async def get_stats(self) -> StoreStats:
        """Get wrapped store statistics, including failures recovered here."""
        stats = await self.store.get_stats()
        if not self._stats.errors:
            return stats
        return replace(
            stats,
            errors=stats.errors + self._stats.errors,
            last_error=self._stats.last_error,
            last_error_at=self._stats.last_error_at,
        )

    def detach(self) -> None:
        """Stop listening to the wrapped store, leaving it running."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        self._events.remove_all_listeners()

    async def destroy(self) -> None:
        """Detach and destroy the wrapped store."""
        self.detach()
        await self.store.destroy()
        await super().destroy()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.store!r})"


class NamespacedStore(StoreDecorator):
    """Key namespace over a shared store.

    Keys are stored as ``"<namespace>:<key>"``. Callers only ever see
    unprefixed keys, and only keys from their own namespace: ``keys``,
    ``mget`` results and forwarded events are filtered and stripped, and
    ``clear`` removes this namespace's keys only.

    Example:
        shared = MemoryStore()
        users = NamespacedStore(shared, "users")
        orders = NamespacedStore(shared, "orders")
    """

    def __init__(self, store: CacheStore, namespace: str):
        """Initialize namespaced store.

        Args:
            store: Shared store
            namespace: Namespace name
        """
        if not namespace:
            raise ValueError("Namespace must be a non-empty string")
        super().__init__(store)
        self.namespace = namespace
        self.prefix = f"{namespace}:"

    def _make_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def _owns(self, key: Any) -> bool:
        return isinstance(key, str) and key.startswith(self.prefix)

    def _strip(self, key: str) -> str:
        return key[len(self.prefix):]

    def _on_store_event(self, event: CacheEvent, *args: Any) -> None:
        if event in KEY_EVENTS:
            if args and self._owns(args[0]):
                self._emit(event, self._strip(args[0]), *args[1:])
        elif event is CacheEvent.ERROR:
            key = getattr(args[0], "key", None) if args else None
            if key is not None and self._owns(key):
                self._emit(event, *args)
        # Key-less errors and whole-store clears belong to the shared store

    async def get(self, key: str) -> Optional[Any]:
        return await self.store.get(self._make_key(key))

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        await self.store.set(self._make_key(key), value, ttl)

    async def has(self, key: str) -> bool:
        return await self.store.has(self._make_key(key))

    async def delete(self, key: str) -> bool:
        return await self.store.delete(self._make_key(key))

    async def clear(self) -> int:
        """Remove this namespace's keys only."""
        keys = await self.keys()
        count = await self.store.mdel([self._make_key(k) for k in keys])
        self._record_clear()
        return count

    async def keys(self, pattern: Optional[str] = None) -> List[str]:
        if any(c in self.prefix for c in "*?[]\\"):
            # Prefix cannot be used as a pattern, filter instead
            stored = [k for k in await self.store.keys() if self._owns(k)]
        else:
            stored = await self.store.keys(self._make_key(pattern or "*"))

        keys = [self._strip(k) for k in stored if self._owns(k)]
        if pattern is not None:
            keys = [k for k in keys if fnmatch.fnmatch(k, pattern)]
        return keys

    async def mget(self, keys: Iterable[str]) -> Dict[str, Any]:
        found = await self.store.mget([self._make_key(k) for k in keys])
        return {self._strip(k): v for k, v in found.items()}

    async def mset(self, items: Mapping[str, Any], ttl: Optional[float] = None) -> int:
        return await self.store.mset({self._make_key(k): v for k, v in items.items()}, ttl)

    async def mdel(self, keys: Iterable[str]) -> int:
        return await self.store.mdel([self._make_key(k) for k in keys])

    async def expire(self, key: str, ttl: Optional[float]) -> bool:
        return await self.store.expire(self._make_key(key), ttl)

    async def ttl(self, key: str) -> Optional[float]:
        return await self.store.ttl(self._make_key(key))

    def __repr__(self) -> str:
        return f"NamespacedStore(namespace={self.namespace!r}, store={self.store!r})"


@dataclass(frozen=True)
class _RawValue:
    """Value stored unserialized by SerializedStore."""

    value: Any


class SerializedStore(StoreDecorator):
    """Serialize values before they reach the wrapped store.

    A value that cannot be serialized is stored unserialized in a private
    holder and read back unchanged, so it is never mistaken for a payload.
    A stored payload that cannot be deserialized is returned as-is. Both
    are reported through the ``error`` event rather than raised.

    Example:
        store = SerializedStore(FileStore("/tmp/cache"), MsgPackSerializer())
    """

    def __init__(self, store: CacheStore, serializer: Optional[Serializer] = None):
        """Initialize serialized store.

        Args:
            store: Wrapped store
            serializer: Value serializer (JSON by default)
        """
        super().__init__(store)
        self.serializer = serializer or JSONSerializer()

    def _encode(self, key: str, value: Any) -> Any:
        try:
            return self.serializer.serialize(value)
        except SerializationError as e:
            self._report(key, e)
            return _RawValue(value)

    def _decode(self, key: str, data: Any) -> Any:
        if isinstance(data, _RawValue):
            return data.value
        if not isinstance(data, (bytes, bytearray, str)):
            return data
        try:
            return self.serializer.deserialize(data)
        except SerializationError as e:
            self._report(key, e)
            return data

    async def get(self, key: str) -> Optional[Any]:
        data = await self.store.get(key)
        if data is None:
            return None
        return self._decode(key, data)

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        await self.store.set(key, self._encode(key, value), ttl)

    async def mget(self, keys: Iterable[str]) -> Dict[str, Any]:
        found = await self.store.mget(keys)
        return {k: self._decode(k, v) for k, v in found.items()}

    async def mset(self, items: Mapping[str, Any], ttl: Optional[float] = None) -> int:
        return await self.store.mset({k: self._encode(k, v) for k, v in items.items()}, ttl)

    def __repr__(self) -> str:
        return f"SerializedStore(format={self.serializer.format_name}, store={self.store!r})"


class CompressedStore(StoreDecorator):
    """Compress large text and binary values.

    ``bytes`` payloads above the threshold are stored with a codec marker
    (``b"__GZIP__"``/``b"__ZLIB__"``). ``str`` payloads above the threshold
    are stored as ``"__compressed__:<codec>:"`` followed by base64, so text
    stores keep receiving text. Everything else passes through unchanged;
    put a SerializedStore in front to compress structured values.

    Example:
        store = SerializedStore(CompressedStore(MemoryStore(), threshold=512))
    """

    TEXT_PREFIX = "__compressed__:"

    def __init__(
        self,
        store: CacheStore,
        threshold: int = 1024,
        compression: CompressionType = CompressionType.GZIP,
        level: int = 6,
    ):
        """Initialize compressed store.

        Args:
            store: Wrapped store
            threshold: Minimum encoded size in bytes to compress
            compression: Codec to use
            level: Compression level
        """
        super().__init__(store)
        self.threshold = threshold
        self.compression = compression
        self.level = level

    def _encode(self, value: Any) -> Any:
        if self.compression is CompressionType.NONE:
            return value

        if isinstance(value, (bytes, bytearray)):
            if len(value) <= self.threshold:
                return value
            return compress_payload(bytes(value), self.compression, self.level)

        if isinstance(value, str):
            data = value.encode("utf-8")
            if len(data) <= self.threshold:
                return value
            body = compress_bytes(data, self.compression, self.level)
            codec = self.compression.name.lower()
            return f"{self.TEXT_PREFIX}{codec}:{base64.b64encode(body).decode('ascii')}"

        return value

    def _decode(self, key: str, value: Any) -> Any:
        try:
            if isinstance(value, (bytes, bytearray)) and is_compressed(value):
                return decompress_payload(bytes(value))

            if isinstance(value, str) and value.startswith(self.TEXT_PREFIX):
                codec, _, body = value[len(self.TEXT_PREFIX):].partition(":")
                compression = CompressionType[codec.upper()]
                data = decompress_bytes(base64.b64decode(body, validate=True), compression)
                return data.decode("utf-8")

        except (SerializationError, ValueError, KeyError) as e:
            self._report(key, e)

        return value

    async def get(self, key: str) -> Optional[Any]:
        value = await self.store.get(key)
        if value is None:
            return None
        return self._decode(key, value)

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        await self.store.set(key, self._encode(value), ttl)

    async def mget(self, keys: Iterable[str]) -> Dict[str, Any]:
        found = await self.store.mget(keys)
        return {k: self._decode(k, v) for k, v in found.items()}

    async def mset(self, items: Mapping[str, Any], ttl: Optional[float] = None) -> int:
        return await self.store.mset({k: self._encode(v) for k, v in items.items()}, ttl)

    def __repr__(self) -> str:
        return (
            f"CompressedStore(codec={self.compression.name.lower()}, "
            f"threshold={self.threshold}, store={self.store!r})"
        )


__all__ = [
    "StoreDecorator",
    "NamespacedStore",
    "SerializedStore",
    "CompressedStore",
]
