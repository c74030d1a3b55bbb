"""KitCache Events - Cache Event Names and Listener Registry.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


class CacheEvent(str, Enum):
    """Observable cache events.

    Payloads passed to listeners:
        HIT(key), MISS(key), SET(key, value), DELETE(key),
        EVICTED(key), EXPIRE(key), ERROR(exc), CLEAR(),
        MEMORY_PRESSURE(usage, limit)
    """

    HIT = "hit"
    MISS = "miss"
    SET = "set"
    DELETE = "delete"
    EVICTED = "evicted"
    EXPIRE = "expire"
    ERROR = "error"
    CLEAR = "clear"
    MEMORY_PRESSURE = "memory_pressure"


EventName = Union[CacheEvent, str]
Listener = Callable[..., Any]


def _event_key(event: EventName) -> str:
    if isinstance(event, CacheEvent):
        return event.value
    return str(event)


class EventEmitter:
    """Per-event listener lists.

    Listeners are plain callables invoked synchronously in registration
    order. A listener that raises is logged and skipped; the remaining
    listeners still run and the emitting operation is unaffected.

    Example:
        events = EventEmitter()
        unsubscribe = events.on(CacheEvent.HIT, lambda key: print(key))
        events.emit(CacheEvent.HIT, "user:1")
        unsubscribe()
    """

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = {}

    def on(self, event: EventName, listener: Listener) -> Callable[[], None]:
        """Register a listener.

        Args:
            event: Event name
            listener: Callback receiving the event payload

        Returns:
            Function that removes the listener
        """
        name = _event_key(event)
        self._listeners.setdefault(name, []).append(listener)

        def unsubscribe() -> None:
            self.off(name, listener)

        return unsubscribe

    def once(self, event: EventName, listener: Listener) -> Callable[[], None]:
        """Register a listener that fires at most once."""
        name = _event_key(event)

        def wrapper(*args: Any) -> Any:
            self.off(name, wrapper)
            return listener(*args)

        return self.on(name, wrapper)

    def off(self, event: EventName, listener: Listener) -> bool:
        """Remove a listener.

        Returns:
            True if the listener was registered
        """
        listeners = self._listeners.get(_event_key(event))
        if not listeners or listener not in listeners:
            return False
        listeners.remove(listener)
        return True

    def emit(self, event: EventName, *args: Any) -> int:
        """Call every listener registered for an event.

        Returns:
            Number of listeners called
        """
        name = _event_key(event)
        listeners = list(self._listeners.get(name, ()))
        for listener in listeners:
            try:
                listener(*args)
            except Exception:
                logger.exception(f"Listener for '{name}' event failed")
        return len(listeners)

    def listener_count(self, event: EventName) -> int:
        """Get number of listeners for an event."""
        return len(self._listeners.get(_event_key(event), ()))

    def remove_all_listeners(self, event: Optional[EventName] = None) -> None:
        """Drop listeners for one event, or for all events."""
        if event is None:
            self._listeners.clear()
        else:
            self._listeners.pop(_event_key(event), None)

    def __repr__(self) -> str:
        total = sum(len(v) for v in self._listeners.values())
        return f"EventEmitter(events={len(self._listeners)}, listeners={total})"


__all__ = ["CacheEvent", "EventEmitter", "EventName", "Listener"]
