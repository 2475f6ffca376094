"""
Read-through memo cache for deterministic derivations.

Derived generators, account masks and discrete-log tables are pure
functions of their inputs, so they can be shared freely once computed.
The cache is append-only: an entry, once stored, is never replaced, and
population on a miss uses insert-or-get-existing semantics. Two threads
missing on the same key may both compute it; the first stored value wins
and is what both callers receive.

There is no module-level instance. Engines take a cache argument so
tests can run with isolated caches.
"""

from __future__ import annotations

import hashlib
import threading
from collections.abc import Callable
from typing import Any, TypeVar

T = TypeVar("T")


class DerivationCache:
    """
    Append-only memoization cache keyed by (namespace, blake2b(key)).

    Args:
        max_entries: Optional cap. When full, new values are computed and
                     returned but not stored; existing entries are never evicted.
    """

    def __init__(self, max_entries: int | None = None) -> None:
        if max_entries is not None and max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self._entries: dict[tuple[str, bytes], Any] = {}
        self._max_entries = max_entries
        self._stats_lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @staticmethod
    def digest(key: bytes) -> bytes:
        """Fixed-width cache key for arbitrary-length input."""
        return hashlib.blake2b(key, digest_size=32).digest()

    def get_or_compute(self, namespace: str, key: bytes, factory: Callable[[], T]) -> T:
        """
        Return the cached value for (namespace, key), computing it on a miss.

        Args:
            namespace: Logical family of the entry (e.g. "generator", "mask").
            key:       Raw input bytes; hashed to form the cache key.
            factory:   Zero-argument callable producing the value.
        """
        slot = (namespace, self.digest(key))
        try:
            value = self._entries[slot]
        except KeyError:
            pass
        else:
            self._record(hit=True)
            return value

        self._record(hit=False)
        value = factory()
        if self._max_entries is not None and len(self._entries) >= self._max_entries:
            return value
        # setdefault keeps whichever value landed first.
        return self._entries.setdefault(slot, value)

    def __contains__(self, item: tuple[str, bytes]) -> bool:
        namespace, key = item
        return (namespace, self.digest(key)) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> dict[str, int | float]:
        """Hit/miss counters for monitoring."""
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "entries": len(self._entries),
            "hit_rate": (self._hits / total) if total else 0.0,
        }

    def _record(self, hit: bool) -> None:
        with self._stats_lock:
            if hit:
                self._hits += 1
            else:
                self._misses += 1
