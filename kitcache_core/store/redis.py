"""KitCache Redis Store - Redis Storage Backend.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

from kitcache_core.errors import StoreError
from kitcache_core.protocol.serializer import PickleSerializer, Serializer
from kitcache_core.store.backend import CacheStore

logger = logging.getLogger(__name__)


@dataclass
class RedisConfig:
    """Redis connection configuration.

    Attributes:
        host: Redis host
        port: Redis port
        db: Redis database number
        password: Redis password
        socket_timeout: Socket timeout
        socket_connect_timeout: Connection timeout
        ssl: Enable SSL
        ssl_ca_certs: CA certificates path
        max_connections: Connection pool size
        prefix: Key prefix
        url: Connection URL, overrides host/port/db/password when set
    """

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    socket_timeout: float = 5.0
    socket_connect_timeout: float = 5.0
    ssl: bool = False
    ssl_ca_certs: Optional[str] = None
    max_connections: int = 10
    prefix: str = "cache:"
    url: Optional[str] = None


class RedisStore(CacheStore):
    """Redis storage backend.

    Uses Redis for distributed caching with:
    - Native TTL support (PSETEX/PEXPIRE/PTTL)
    - Cursor-based key scanning
    - Pipelined batch writes
    - Connection pooling

    The ``redis`` package is imported on first use. A ready client
    (anything exposing the ``redis.asyncio.Redis`` methods used here)
    can be injected instead.

    Example:
        store = RedisStore(RedisConfig(host="redis.local", port=6379))
        await store.set("key", "data", ttl=60)
        value = await store.get("key")
    """

    SCAN_COUNT = 100

    def __init__(
        self,
        config: Optional[RedisConfig] = None,
        serializer: Optional[Serializer] = None,
        client: Optional[Any] = None,
    ):
        """Initialize Redis store.

        Args:
            config: Redis configuration
            serializer: Value serializer (pickle by default)
            client: Prebuilt async Redis client
        """
        super().__init__()
        self.config = config or RedisConfig()
        self.serializer = serializer or PickleSerializer()
        self._client: Optional[Any] = client

    async def _ensure_connected(self) -> Any:
        """Ensure Redis connection exists.

        Returns:
            Redis client
        """
        if self._client is not None:
            return self._client

        try:
            import redis.asyncio as aioredis
        except ImportError:
            raise ImportError("Redis package not installed. Run: pip install redis")

        try:
            if self.config.url:
                client = aioredis.from_url(
                    self.config.url,
                    socket_timeout=self.config.socket_timeout,
                    socket_connect_timeout=self.config.socket_connect_timeout,
                    max_connections=self.config.max_connections,
                    decode_responses=False,
                )
            else:
                client = aioredis.Redis(
                    host=self.config.host,
                    port=self.config.port,
                    db=self.config.db,
                    password=self.config.password,
                    socket_timeout=self.config.socket_timeout,
                    socket_connect_timeout=self.config.socket_connect_timeout,
                    ssl=self.config.ssl,
                    ssl_ca_certs=self.config.ssl_ca_certs,
                    max_connections=self.config.max_connections,
                    decode_responses=False,  # We handle serialization
                )

            # Test connection
            await client.ping()
            logger.info(f"Connected to Redis at {self._address}")

        except Exception as e:
            raise self._fail("connect", None, e) from e

        self._client = client
        return client

    @property
    def _address(self) -> str:
        return self.config.url or f"{self.config.host}:{self.config.port}"

    def _fail(self, action: str, key: Optional[str], error: Exception) -> StoreError:
        logger.error(f"Redis {action} error: {error}")
        store_error = StoreError(f"Redis {action} failed: {error}", key=key)
        self._record_error(store_error)
        return store_error

    def _make_key(self, key: str) -> str:
        """Make prefixed Redis key."""
        return f"{self.config.prefix}{key}"

    def _strip_key(self, redis_key: Any) -> str:
        key = redis_key.decode() if isinstance(redis_key, bytes) else redis_key
        return key[len(self.config.prefix):]

    async def _scan_keys(self, client: Any, match: str) -> List[Any]:
        keys = []
        cursor = 0
        while True:
            cursor, batch = await client.scan(cursor, match=match, count=self.SCAN_COUNT)
            keys.extend(batch)
            if cursor == 0:
                break
        return keys

    async def get(self, key: str) -> Optional[Any]:
        client = await self._ensure_connected()
        try:
            data = await client.get(self._make_key(key))
            value = None if data is None else self.serializer.deserialize(data)
        except Exception as e:
            raise self._fail("get", key, e) from e

        if value is None:
            self._record_miss(key)
        else:
            self._record_hit(key)
        return value

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        client = await self._ensure_connected()
        try:
            redis_key = self._make_key(key)
            data = self.serializer.serialize(value)

            if ttl is not None:
                await client.psetex(redis_key, max(1, int(ttl * 1000)), data)
            else:
                await client.set(redis_key, data)
        except Exception as e:
            raise self._fail("set", key, e) from e

        self._record_set(key, value)

    async def has(self, key: str) -> bool:
        client = await self._ensure_connected()
        try:
            return await client.exists(self._make_key(key)) > 0
        except Exception as e:
            raise self._fail("exists", key, e) from e

    async def delete(self, key: str) -> bool:
        client = await self._ensure_connected()
        try:
            removed = await client.delete(self._make_key(key)) > 0
        except Exception as e:
            raise self._fail("delete", key, e) from e

        if removed:
            self._record_delete(key)
        return removed

    async def clear(self) -> int:
        """Clear all entries under the key prefix.

        Returns:
            Number cleared
        """
        client = await self._ensure_connected()
        try:
            count = 0
            for redis_key in await self._scan_keys(client, f"{self.config.prefix}*"):
                count += await client.delete(redis_key)
        except Exception as e:
            raise self._fail("clear", None, e) from e

        self._record_clear()
        return count

    async def keys(self, pattern: Optional[str] = None) -> List[str]:
        client = await self._ensure_connected()
        try:
            redis_keys = await self._scan_keys(client, self._make_key(pattern or "*"))
        except Exception as e:
            raise self._fail("keys", None, e) from e

        return [self._strip_key(k) for k in redis_keys]

    async def mget(self, keys: Iterable[str]) -> Dict[str, Any]:
        keys = list(keys)
        if not keys:
            return {}

        client = await self._ensure_connected()
        try:
            values = await client.mget([self._make_key(k) for k in keys])
            result = {}
            for key, data in zip(keys, values):
                if data is None:
                    self._record_miss(key)
                    continue
                result[key] = self.serializer.deserialize(data)
                self._record_hit(key)
            return result
        except Exception as e:
            raise self._fail("mget", None, e) from e

    async def mset(self, items: Mapping[str, Any], ttl: Optional[float] = None) -> int:
        if not items:
            return 0

        client = await self._ensure_connected()
        try:
            pipe = client.pipeline()
            for key, value in items.items():
                redis_key = self._make_key(key)
                data = self.serializer.serialize(value)
                if ttl is not None:
                    pipe.psetex(redis_key, max(1, int(ttl * 1000)), data)
                else:
                    pipe.set(redis_key, data)
            await pipe.execute()
        except Exception as e:
            raise self._fail("mset", None, e) from e

        for key, value in items.items():
            self._record_set(key, value)
        return len(items)

    async def mdel(self, keys: Iterable[str]) -> int:
        keys = list(keys)
        if not keys:
            return 0

        # Per-key deletes so each removal is reported
        count = 0
        for key in keys:
            if await self.delete(key):
                count += 1
        return count

    async def expire(self, key: str, ttl: Optional[float]) -> bool:
        client = await self._ensure_connected()
        try:
            redis_key = self._make_key(key)
            if ttl is None:
                if not await client.exists(redis_key):
                    return False
                await client.persist(redis_key)
                return True
            return bool(await client.pexpire(redis_key, max(1, int(ttl * 1000))))
        except Exception as e:
            raise self._fail("expire", key, e) from e

    async def ttl(self, key: str) -> Optional[float]:
        """Get remaining TTL.

        Returns:
            TTL in seconds, None when absent or persistent
        """
        client = await self._ensure_connected()
        try:
            ttl_ms = await client.pttl(self._make_key(key))
        except Exception as e:
            raise self._fail("ttl", key, e) from e

        if ttl_ms is None or ttl_ms < 0:
            return None
        return ttl_ms / 1000

    async def destroy(self) -> None:
        """Close Redis connection and drop listeners."""
        if self._client is not None:
            client, self._client = self._client, None
            await client.aclose()
            logger.info(f"Closed Redis connection to {self._address}")
        await super().destroy()

    def __repr__(self) -> str:
        return f"RedisStore(address={self._address}, prefix={self.config.prefix!r})"


__all__ = ["RedisStore", "RedisConfig"]
