# src/cache/ttl_map.py — v1
"""Capacity-bounded map with per-entry expiry.

Eviction is by insertion order: when a new key arrives at capacity the
oldest inserted key goes, regardless of how recently it was read. Expired
entries are dropped lazily on lookup.

Not thread-safe; intended for a single event loop.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable, Iterator
from typing import Generic, TypeVar

V = TypeVar("V")


class TTLMap(Generic[V]):
    """Insertion-ordered key/value map with TTL and a size cap."""

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._data: OrderedDict[str, tuple[V, float]] = OrderedDict()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def now(self) -> float:
        return self._clock()

    def get(self, key: str) -> V | None:
        """Value for ``key`` if present and not expired."""
        slot = self._data.get(key)
        if slot is None:
            return None
        value, expires_at = slot
        if self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    def put(self, key: str, value: V, expires_at: float | None = None) -> int:
        """Insert or replace ``key``.

        Returns:
            Number of entries evicted to make room (0 or 1).
        """
        if expires_at is None:
            expires_at = self._clock() + self._ttl

        evicted = 0
        if key in self._data:
            del self._data[key]
        elif len(self._data) >= self._max_entries:
            self._data.popitem(last=False)
            evicted = 1

        self._data[key] = (value, expires_at)
        return evicted

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def clear(self) -> int:
        """Remove everything; return how many entries were dropped."""
        count = len(self._data)
        self._data.clear()
        return count

    def items(self) -> list[tuple[str, V]]:
        """Snapshot of (key, value) pairs, oldest first, expired included."""
        return [(key, value) for key, (value, _) in self._data.items()]

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._data))
