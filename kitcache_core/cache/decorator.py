"""KitCache Decorators - Caching Decorators.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import functools
import hashlib
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, TypeVar

if TYPE_CHECKING:
    from kitcache_core.cache.manager import CacheManager

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

MAX_KEY_LENGTH = 250


def _make_key(
    func: Callable,
    args: tuple,
    kwargs: dict,
    key_prefix: Optional[str] = None,
    key_builder: Optional[Callable[..., str]] = None,
    typed: bool = False,
) -> str:
    """Build cache key from function call.

    Args:
        func: Function being cached
        args: Positional arguments
        kwargs: Keyword arguments
        key_prefix: Optional prefix (defaults to the function's module)
        key_builder: Custom key builder
        typed: Include types in key

    Returns:
        Cache key string
    """
    if key_builder:
        return key_builder(*args, **kwargs)

    parts = [key_prefix or func.__module__, func.__qualname__]

    for arg in args:
        if typed:
            parts.append(f"{type(arg).__name__}:{arg}")
        else:
            parts.append(str(arg))

    # Sorted for consistency
    for k in sorted(kwargs.keys()):
        v = kwargs[k]
        if typed:
            parts.append(f"{k}={type(v).__name__}:{v}")
        else:
            parts.append(f"{k}={v}")

    key = ":".join(parts)

    if len(key) > MAX_KEY_LENGTH:
        key = hashlib.sha256(key.encode()).hexdigest()

    return key


def cached(
    manager: "CacheManager",
    ttl: Optional[float] = None,
    key_prefix: Optional[str] = None,
    key_builder: Optional[Callable[..., str]] = None,
    typed: bool = False,
) -> Callable[[F], Callable[..., Awaitable[Any]]]:
    """Decorator to cache function results in a CacheManager.

    Calls go through ``manager.get_or_set``, so concurrent calls with the
    same arguments run the function once. Coroutine functions are awaited;
    plain functions are called directly. Either way the decorated function
    is a coroutine function.

    Args:
        manager: Cache to store results in
        ttl: Cache TTL in seconds
        key_prefix: Key prefix
        key_builder: Custom key builder
        typed: Include argument types in key

    Returns:
        Decorated function

    Example:
        @cached(cache, ttl=300)
        async def get_user(user_id: int) -> User:
            return await db.get_user(user_id)

        @cached(cache, key_builder=lambda user_id: f"user:{user_id}")
        async def get_user_v2(user_id: int) -> User:
            return await db.get_user(user_id)

        await get_user.cache_invalidate(42)
    """
    def decorator(func: F) -> Callable[..., Awaitable[Any]]:
        def cache_key(*args, **kwargs) -> str:
            """Get cache key for arguments."""
            return _make_key(
                func, args, kwargs,
                key_prefix=key_prefix,
                key_builder=key_builder,
                typed=typed,
            )

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            return await manager.get_or_set(
                cache_key(*args, **kwargs),
                lambda: func(*args, **kwargs),
                ttl=ttl,
            )

        async def cache_invalidate(*args, **kwargs) -> bool:
            """Drop the cached result for arguments."""
            key = cache_key(*args, **kwargs)
            logger.debug(f"Invalidating cached result {key!r} of {func.__qualname__}")
            return await manager.delete(key)

        wrapper.cache_key = cache_key
        wrapper.cache_invalidate = cache_invalidate
        wrapper.cache = manager
        wrapper.__wrapped__ = func

        return wrapper

    return decorator


__all__ = ["cached"]
