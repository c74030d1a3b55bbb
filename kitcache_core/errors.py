"""KitCache Errors - Cache Exception Hierarchy.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

from typing import Optional


class CacheError(Exception):
    """Base exception for cache errors.

    Attributes:
        key: Cache key involved in the error, if any
    """

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class ConfigurationError(CacheError, ValueError):
    """Invalid cache configuration.

    Raised synchronously at construction time and never recovered.
    """


class StoreError(CacheError):
    """Backing store I/O failure.

    Backends raise it with the original exception chained as ``__cause__``.
    The cache manager catches it, counts it and degrades the operation.
    """


class SerializationError(CacheError):
    """Value could not be serialized or deserialized."""


__all__ = [
    "CacheError",
    "ConfigurationError",
    "StoreError",
    "SerializationError",
]
