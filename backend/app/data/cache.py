"""
Simple in-memory TTL cache to avoid redundant Land Registry calls.
Not distributed — just a dict of entries with capture times.

Entries are valid while ``now - stored_at < ttl``. Expired entries are
dropped lazily on the next lookup; there is no background sweep.
Values are deep-copied in and out so callers can't corrupt cached data.
"""

import copy
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    stored_at: float
    ttl: float

    def is_valid(self, now: float) -> bool:
        return now - self.stored_at < self.ttl


@dataclass(frozen=True)
class CacheStats:
    size: int
    keys: list[str]
    approx_memory_bytes: int


class TTLCache:
    def __init__(
        self,
        default_ttl: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            default_ttl: Default time-to-live in seconds (default: 5 minutes).
            clock: Monotonic time source, injectable for tests.
        """
        self._store: dict[str, CacheEntry] = {}
        self._default_ttl = default_ttl
        self._clock = clock

    def get(self, key: str) -> Optional[Any]:
        entry = self._store.get(key)
        if entry is None:
            return None
        if not entry.is_valid(self._clock()):
            del self._store[key]
            return None
        return copy.deepcopy(entry.value)

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ttl = ttl if ttl is not None else self._default_ttl
        self._store[key] = CacheEntry(
            value=copy.deepcopy(value),
            stored_at=self._clock(),
            ttl=ttl,
        )

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one entry, or every entry when no key is given."""
        if key is None:
            self._store.clear()
        else:
            self._store.pop(key, None)

    def stats(self) -> CacheStats:
        # Read-only: expired-but-unvisited entries are still counted.
        keys = list(self._store.keys())
        approx = sum(len(k) + len(repr(e.value)) for k, e in self._store.items())
        return CacheStats(size=len(keys), keys=keys, approx_memory_bytes=approx)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._store)
