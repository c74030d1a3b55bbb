"""KitCache LFU Policy - Least Frequently Used Eviction.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import itertools
from typing import Dict, Optional

from kitcache_core.eviction.policy import EvictionPolicy


class LFUPolicy(EvictionPolicy):
    """Least Frequently Used eviction policy.

    Evicts the key with the lowest access count.

    Implementation:
    - Tracks frequency count per key (insert = 1, each access + 1)
    - Groups keys by frequency
    - Evicts from lowest frequency group
    - Ties broken by insertion order (oldest inserted key first)

    Example:
        policy = LFUPolicy(max_size=1000)
        policy.on_insert("key1")
        policy.on_access("key1")  # freq=2
        policy.on_access("key1")  # freq=3
        evict_key = policy.choose_eviction()
    """

    def __init__(self, max_size: int = 1000):
        super().__init__(max_size)

        # Key -> frequency count
        self._frequency: Dict[str, int] = {}

        # Frequency -> keys in that group
        self._freq_to_keys: Dict[int, Dict[str, None]] = {}

        # Key -> insertion sequence number
        self._inserted: Dict[str, int] = {}
        self._sequence = itertools.count()

        self._min_freq = 0

    def _add_to_group(self, key: str, freq: int) -> None:
        self._freq_to_keys.setdefault(freq, {})[key] = None

    def _remove_from_group(self, key: str, freq: int) -> None:
        group = self._freq_to_keys.get(freq)
        if group is None:
            return
        group.pop(key, None)
        if not group:
            del self._freq_to_keys[freq]

    def on_access(self, key: str) -> None:
        """Record key access (increase frequency)."""
        self._stats.accesses += 1

        freq = self._frequency.get(key)
        if freq is None:
            return

        self._remove_from_group(key, freq)
        if self._min_freq == freq and freq not in self._freq_to_keys:
            self._min_freq = freq + 1

        self._frequency[key] = freq + 1
        self._add_to_group(key, freq + 1)

    def on_insert(self, key: str) -> None:
        """Record key insertion (frequency=1)."""
        old = self._frequency.get(key)
        if old is not None:
            self._remove_from_group(key, old)

        self._frequency[key] = 1
        self._inserted[key] = next(self._sequence)
        self._add_to_group(key, 1)
        self._min_freq = 1
        self._stats.current_size = len(self._frequency)

    def on_delete(self, key: str) -> None:
        """Record key deletion."""
        freq = self._frequency.pop(key, None)
        if freq is None:
            return

        self._inserted.pop(key, None)
        self._remove_from_group(key, freq)
        self._stats.current_size = len(self._frequency)

    def choose_eviction(self, exclude: Optional[str] = None) -> Optional[str]:
        """Choose LFU key to evict.

        Returns:
            Least frequent key (oldest insertion among ties) other than
            ``exclude``, or None
        """
        if not self._frequency:
            return None

        if self._min_freq not in self._freq_to_keys:
            self._min_freq = min(self._freq_to_keys)

        for freq in sorted(self._freq_to_keys):
            candidates = [k for k in self._freq_to_keys[freq] if k != exclude]
            if candidates:
                self._stats.evictions += 1
                return min(candidates, key=self._inserted.__getitem__)
        return None

    def clear(self) -> None:
        """Clear all tracked keys."""
        self._frequency.clear()
        self._freq_to_keys.clear()
        self._inserted.clear()
        self._min_freq = 0
        self._stats.current_size = 0

    def contains(self, key: str) -> bool:
        return key in self._frequency

    def size(self) -> int:
        return len(self._frequency)

    def get_frequency(self, key: str) -> int:
        """Get access frequency for key.

        Returns:
            Frequency count or 0
        """
        return self._frequency.get(key, 0)

    def __repr__(self) -> str:
        return f"LFUPolicy(size={len(self._frequency)}, min_freq={self._min_freq})"


__all__ = ["LFUPolicy"]
