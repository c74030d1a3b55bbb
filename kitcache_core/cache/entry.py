"""KitCache Entry - Cache Entry with Expiry.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

# Bookkeeping overhead counted per entry
ENTRY_OVERHEAD_BYTES = 64


def estimate_size(key: str, value: Any) -> int:
    """Estimate the memory held by a cached key and value.

    Text counts two bytes per character, numbers eight, booleans four;
    other values are measured by their JSON text, or 1024 bytes when they
    are not JSON-encodable.
    """
    size = len(key) * 2 + ENTRY_OVERHEAD_BYTES
    if value is None:
        return size + 8
    if isinstance(value, bool):
        return size + 4
    if isinstance(value, (int, float)):
        return size + 8
    if isinstance(value, str):
        return size + len(value) * 2
    if isinstance(value, (bytes, bytearray)):
        return size + len(value)
    try:
        return size + len(json.dumps(value)) * 2
    except (TypeError, ValueError):
        return size + 1024


@dataclass
class EntryMetadata:
    """Metadata for a cache entry.

    Attributes:
        created_at: When entry was inserted (never changes afterwards)
        accessed_at: Last access time
        access_count: Number of accesses
        size_bytes: Approximate size of value in bytes
    """

    created_at: float = field(default_factory=time.time)
    accessed_at: float = field(default_factory=time.time)
    access_count: int = 0
    size_bytes: int = 0

    def touch(self, now: Optional[float] = None) -> None:
        """Update access time and count."""
        self.accessed_at = time.time() if now is None else now
        self.access_count += 1

    @property
    def age_seconds(self) -> float:
        """Get entry age in seconds."""
        return time.time() - self.created_at

    @property
    def idle_seconds(self) -> float:
        """Get time since last access."""
        return time.time() - self.accessed_at


@dataclass
class CacheEntry:
    """A cached value with its expiry.

    An entry is live while ``expires_at`` is None or still in the future.
    Non-live entries must never be handed back to callers.

    Attributes:
        key: Cache key
        value: Cached value
        expires_at: Absolute expiry timestamp, None for no expiry
        metadata: Entry metadata
    """

    key: str
    value: Any
    expires_at: Optional[float] = None
    metadata: EntryMetadata = field(default_factory=EntryMetadata)

    def __post_init__(self):
        if self.metadata.size_bytes == 0:
            self.metadata.size_bytes = estimate_size(self.key, self.value)

    @classmethod
    def create(
        cls,
        key: str,
        value: Any,
        ttl: Optional[float] = None,
        now: Optional[float] = None,
    ) -> "CacheEntry":
        """Build an entry expiring ``ttl`` seconds from now.

        Args:
            key: Cache key
            value: Value to cache
            ttl: TTL in seconds, None for no expiry
            now: Insertion timestamp (defaults to current time)

        Returns:
            CacheEntry instance
        """
        now = time.time() if now is None else now
        expires_at = now + ttl if ttl is not None else None
        return cls(
            key=key,
            value=value,
            expires_at=expires_at,
            metadata=EntryMetadata(created_at=now, accessed_at=now),
        )

    @property
    def created_at(self) -> float:
        """Get insertion timestamp."""
        return self.metadata.created_at

    def is_live(self, now: Optional[float] = None) -> bool:
        """Check if entry may still be served."""
        if self.expires_at is None:
            return True
        now = time.time() if now is None else now
        return now < self.expires_at

    @property
    def is_expired(self) -> bool:
        """Check if entry has expired."""
        return not self.is_live()

    def remaining_ttl(self, now: Optional[float] = None) -> Optional[float]:
        """Get remaining TTL in seconds.

        Returns:
            Seconds left (never negative), or None for no expiry
        """
        if self.expires_at is None:
            return None
        now = time.time() if now is None else now
        return max(0.0, self.expires_at - now)

    def expire_in(self, ttl: Optional[float], now: Optional[float] = None) -> None:
        """Reset expiry relative to now.

        Args:
            ttl: New TTL in seconds, None removes the expiry
            now: Reference timestamp
        """
        if ttl is None:
            self.expires_at = None
            return
        now = time.time() if now is None else now
        self.expires_at = now + ttl

    def touch(self) -> None:
        """Record an access."""
        self.metadata.touch()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary.

        Returns:
            Dictionary representation
        """
        return {
            "key": self.key,
            "value": self.value,
            "expires_at": self.expires_at,
            "metadata": {
                "created_at": self.metadata.created_at,
                "accessed_at": self.metadata.accessed_at,
                "access_count": self.metadata.access_count,
                "size_bytes": self.metadata.size_bytes,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        """Create from dictionary.

        Args:
            data: Dictionary data

        Returns:
            CacheEntry instance
        """
        meta = data.get("metadata", {})
        metadata = EntryMetadata(
            created_at=meta.get("created_at", time.time()),
            accessed_at=meta.get("accessed_at", time.time()),
            access_count=meta.get("access_count", 0),
            size_bytes=meta.get("size_bytes", 0),
        )

        return cls(
            key=data["key"],
            value=data["value"],
            expires_at=data.get("expires_at"),
            metadata=metadata,
        )

    def __repr__(self) -> str:
        remaining = self.remaining_ttl()
        if remaining is None:
            return f"CacheEntry(key={self.key!r})"
        return f"CacheEntry(key={self.key!r}, ttl={remaining:.1f}s)"


__all__ = ["CacheEntry", "EntryMetadata", "estimate_size"]
