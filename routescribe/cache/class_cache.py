"""
Class Cache: insert-once memo tables keyed by class name.

One instance per concern (model schemas, resource shapes), owned by an
AnalysisSession. Entries are never replaced or invalidated during a run,
so a failure while analyzing one unit cannot corrupt what another unit reads.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """A memoized value for one class."""

    key: str
    value: T
    timestamp: float = field(default_factory=time.time)


class ClassCache(Generic[T]):
    """In-memory memo table keyed by case-insensitive class name."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._store: dict[str, CacheEntry[T]] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def normalize(class_name: str) -> str:
        return class_name.lstrip("\\").lower()

    def __contains__(self, class_name: str) -> bool:
        return self.normalize(class_name) in self._store

    def get(self, class_name: str) -> T | None:
        """Look up a memoized value; counts a hit or a miss."""
        entry = self._store.get(self.normalize(class_name))
        if entry is None:
            self.misses += 1
            return None
        self.hits += 1
        return entry.value

    def put(self, class_name: str, value: T) -> T:
        """Insert once. If the key is already present the stored value wins and is returned."""
        key = self.normalize(class_name)
        existing = self._store.get(key)
        if existing is not None:
            return existing.value
        self._store[key] = CacheEntry(key=key, value=value)
        return value

    def get_or_compute(self, class_name: str, factory: Callable[[], T]) -> T:
        cached = self.get(class_name)
        if cached is not None:
            return cached
        return self.put(class_name, factory())

    def clear(self) -> None:
        """Drop every entry; only between independent runs."""
        self._store.clear()
        self.hits = 0
        self.misses = 0

    @property
    def size(self) -> int:
        """Number of cached entries."""
        return len(self._store)

    def stats(self) -> dict[str, Any]:
        """Cache statistics."""
        return {
            "name": self.name,
            "total_entries": len(self._store),
            "hits": self.hits,
            "misses": self.misses,
        }
