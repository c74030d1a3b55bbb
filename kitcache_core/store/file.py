"""KitCache File Store - File-Based Storage Backend.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import asyncio
import fnmatch
import hashlib
import logging
import time
import uuid
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import aiofiles
import aiofiles.os

from kitcache_core.cache.entry import CacheEntry
from kitcache_core.errors import SerializationError, StoreError
from kitcache_core.protocol.serializer import PickleSerializer, Serializer
from kitcache_core.store.backend import CacheStore

logger = logging.getLogger(__name__)


class FileStore(CacheStore):
    """File-based storage backend.

    Persists cache entries to disk for durability across restarts.
    Uses a sharded directory structure for better performance.

    Features:
    - Persistent storage
    - Sharded directories (256 shards, created on first write)
    - Atomic writes
    - Configurable serialization
    - Concurrent batch operations

    Example:
        store = FileStore("/var/cache/myapp")
        await store.set("key", {"name": "data"}, ttl=300)
        value = await store.get("key")
    """

    SHARD_COUNT = 256
    TEMP_SUFFIX = ".tmp"

    def __init__(self, base_path: str, serializer: Optional[Serializer] = None):
        """Initialize file store.

        Args:
            base_path: Base directory for cache files
            serializer: Entry serializer (pickle by default)
        """
        super().__init__()
        self.base_path = Path(base_path)
        self.serializer = serializer or PickleSerializer()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _get_shard(self, key: str) -> str:
        """Get shard directory name for key."""
        hash_value = hashlib.md5(key.encode()).hexdigest()
        return hash_value[:2]

    def _get_path(self, key: str) -> Path:
        """Get file path for key.

        The filename is a hash so any key is a valid filename.
        """
        filename = hashlib.sha256(key.encode()).hexdigest()
        return self.base_path / self._get_shard(key) / filename

    def _fail(self, action: str, key: Optional[str], error: Exception) -> StoreError:
        target = f" {key!r}" if key is not None else ""
        logger.error(f"Error {action}{target} in {self.base_path}: {error}")
        store_error = StoreError(f"File store {action} failed: {error}", key=key)
        self._record_error(store_error)
        return store_error

    async def _read_entry(self, path: Path) -> Optional[CacheEntry]:
        """Read an entry file, None if it does not exist."""
        try:
            async with aiofiles.open(path, "rb") as f:
                data = await f.read()
        except FileNotFoundError:
            return None
        return CacheEntry.from_dict(self.serializer.deserialize(data))

    async def _remove(self, path: Path) -> bool:
        try:
            await aiofiles.os.remove(path)
            return True
        except FileNotFoundError:
            return False

    async def _load_live(self, key: str) -> Optional[CacheEntry]:
        """Load the live entry for key, deleting its file when expired."""
        path = self._get_path(key)
        try:
            entry = await self._read_entry(path)
            if entry is None:
                return None
            if not entry.is_live():
                await self._remove(path)
                self._record_expire(key)
                return None
            return entry
        except (OSError, SerializationError, KeyError, AttributeError) as e:
            raise self._fail("reading", key, e) from e

    async def _write_entry(self, key: str, entry: CacheEntry) -> None:
        path = self._get_path(key)
        temp_path = path.with_name(f"{path.name}.{uuid.uuid4().hex}{self.TEMP_SUFFIX}")

        try:
            data = self.serializer.serialize(entry.to_dict())
            await aiofiles.os.makedirs(path.parent, exist_ok=True)

            # Atomic write
            async with aiofiles.open(temp_path, "wb") as f:
                await f.write(data)
            await aiofiles.os.replace(temp_path, path)

        except (OSError, SerializationError) as e:
            try:
                await self._remove(temp_path)
            except OSError as cleanup_error:
                logger.warning(f"Could not remove temp file {temp_path}: {cleanup_error}")
            raise self._fail("writing", key, e) from e

    async def _entry_files(self) -> List[Path]:
        """List every entry file across shards."""
        files = []
        for shard in await aiofiles.os.listdir(self.base_path):
            shard_dir = self.base_path / shard
            if not await aiofiles.os.path.isdir(shard_dir):
                continue
            for name in await aiofiles.os.listdir(shard_dir):
                if not name.endswith(self.TEMP_SUFFIX):
                    files.append(shard_dir / name)
        return files

    async def _scan(self) -> List[Tuple[Path, CacheEntry]]:
        """Read all entry files, dropping expired ones on the way.

        Unreadable files are logged, recorded as errors and skipped.
        """
        now = time.time()
        live = []
        for path in await self._entry_files():
            try:
                entry = await self._read_entry(path)
            except (OSError, SerializationError, KeyError, AttributeError) as e:
                logger.warning(f"Skipping unreadable cache file {path}: {e}")
                store_error = StoreError(f"Unreadable cache file {path}: {e}")
                store_error.__cause__ = e
                self._record_error(store_error)
                continue

            if entry is None:
                continue
            if not entry.is_live(now):
                if await self._remove(path):
                    self._record_expire(entry.key)
                continue
            live.append((path, entry))
        return live

    async def get(self, key: str) -> Optional[Any]:
        entry = await self._load_live(key)
        if entry is None:
            self._record_miss(key)
            return None

        self._record_hit(key)
        return entry.value

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        await self._write_entry(key, CacheEntry.create(key, value, ttl))
        self._record_set(key, value)

    async def has(self, key: str) -> bool:
        return await self._load_live(key) is not None

    async def delete(self, key: str) -> bool:
        if await self._load_live(key) is None:
            return False

        try:
            removed = await self._remove(self._get_path(key))
        except OSError as e:
            raise self._fail("deleting", key, e) from e

        if removed:
            self._record_delete(key)
        return removed

    async def clear(self) -> int:
        count = 0
        try:
            for path in await self._entry_files():
                if await self._remove(path):
                    count += 1
        except OSError as e:
            raise self._fail("clearing", None, e) from e

        self._stats.entry_count = 0
        self._record_clear()
        return count

    async def keys(self, pattern: Optional[str] = None) -> List[str]:
        """Get all live keys.

        Filenames are hashes, so every file is read to recover its key.
        This is expensive for large stores.
        """
        try:
            entries = await self._scan()
        except OSError as e:
            raise self._fail("listing", None, e) from e

        keys = [entry.key for _, entry in entries]
        if pattern is not None:
            keys = [k for k in keys if fnmatch.fnmatch(k, pattern)]
        return keys

    async def mget(self, keys: Iterable[str]) -> Dict[str, Any]:
        keys = list(keys)
        values = await asyncio.gather(*(self.get(k) for k in keys))
        return {k: v for k, v in zip(keys, values) if v is not None}

    async def mset(self, items: Mapping[str, Any], ttl: Optional[float] = None) -> int:
        await asyncio.gather(*(self.set(k, v, ttl) for k, v in items.items()))
        return len(items)

    async def mdel(self, keys: Iterable[str]) -> int:
        results = await asyncio.gather(*(self.delete(k) for k in keys))
        return sum(1 for removed in results if removed)

    async def expire(self, key: str, ttl: Optional[float]) -> bool:
        entry = await self._load_live(key)
        if entry is None:
            return False
        entry.expire_in(ttl)
        await self._write_entry(key, entry)
        return True

    async def ttl(self, key: str) -> Optional[float]:
        entry = await self._load_live(key)
        if entry is None:
            return None
        return entry.remaining_ttl()

    async def purge_expired(self) -> int:
        """Remove expired entries from disk.

        Returns:
            Number removed
        """
        before = self._stats.expirations
        try:
            await self._scan()
        except OSError as e:
            raise self._fail("purging", None, e) from e

        removed = self._stats.expirations - before
        if removed:
            logger.debug(f"Purged {removed} expired files from {self.base_path}")
        return removed

    async def disk_usage(self) -> int:
        """Get total disk usage.

        Returns:
            Size in bytes
        """
        total = 0
        for path in await self._entry_files():
            try:
                stat = await aiofiles.os.stat(path)
            except FileNotFoundError:
                continue
            total += stat.st_size
        return total

    def __repr__(self) -> str:
        return f"FileStore(path={self.base_path})"


__all__ = ["FileStore"]
