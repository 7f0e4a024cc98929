"""
Time-expiring read-through cache used in front of remote reads.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Hashable, Optional, TypeVar

V = TypeVar("V")

Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    value: V
    stored_at: float
    fresh: bool


class ExpiringCache(Generic[V]):
    """
    Maps a key to the last value fetched for it and when it was stored.

    An entry is fresh while `now - stored_at < ttl_seconds`. Stale entries
    are kept, not evicted: `get_stale` serves them when the remote read is
    not possible, since stale data beats no data. Keys are independent of
    one another; writing one key never touches another.
    """

    def __init__(self, ttl_seconds: float, clock: Clock = time.time):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[Hashable, tuple[V, float]] = {}

    def get(self, key: Hashable) -> Optional[CacheEntry[V]]:
        stored = self._entries.get(key)
        if stored is None:
            return None
        value, stored_at = stored
        fresh = (self._clock() - stored_at) < self.ttl_seconds
        return CacheEntry(value=value, stored_at=stored_at, fresh=fresh)

    def get_fresh(self, key: Hashable) -> Optional[V]:
        entry = self.get(key)
        if entry is None or not entry.fresh:
            return None
        return entry.value

    def get_stale(self, key: Hashable) -> Optional[V]:
        """Returns the entry's value whatever its age."""
        stored = self._entries.get(key)
        return stored[0] if stored is not None else None

    def put(self, key: Hashable, value: V) -> None:
        self._entries[key] = (value, self._clock())

    def invalidate(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
