"""
Unit Cache: SHA-256 hash-based parse caching.

Caches parsed source units per file, keyed by content hash.
Unchanged sources skip re-parsing entirely.
"""

from __future__ import annotations

import hashlib
from typing import Any

from routescribe.core.unit import SourceUnit


class UnitCache:
    """In-memory source-unit cache keyed by path and SHA-256 of content."""

    def __init__(self, max_entries: int = 512) -> None:
        self._store: dict[str, SourceUnit] = {}
        self.max_entries = max_entries

    @staticmethod
    def hash_content(content: str) -> str:
        """Compute SHA-256 hash of file content."""
        return hashlib.sha256(content.encode("utf-8")).hexdigest()

    def _key(self, path: str, content: str) -> str:
        return f"{path}:{self.hash_content(content)}"

    def get(self, path: str, content: str) -> SourceUnit | None:
        """Look up a parsed unit; None if not cached or content changed."""
        return self._store.get(self._key(path, content))

    def put(self, path: str, content: str, unit: SourceUnit) -> None:
        """Cache a parsed unit, evicting the oldest entry when full."""
        if len(self._store) >= self.max_entries:
            oldest = next(iter(self._store))
            del self._store[oldest]
        self._store[self._key(path, content)] = unit

    def parse(self, content: str, path: str = "<memory>") -> SourceUnit:
        """Return the cached unit or parse and cache it. Parse errors propagate."""
        cached = self.get(path, content)
        if cached is not None:
            return cached
        unit = SourceUnit.parse(content, path)
        self.put(path, content, unit)
        return unit

    def invalidate(self, path: str) -> int:
        """Remove all cached entries for a path. Returns count removed."""
        keys_to_remove = [k for k in self._store if k.startswith(f"{path}:")]
        for key in keys_to_remove:
            del self._store[key]
        return len(keys_to_remove)

    def clear(self) -> None:
        """Clear all cached entries."""
        self._store.clear()

    @property
    def size(self) -> int:
        """Number of cached entries."""
        return len(self._store)

    def stats(self) -> dict[str, Any]:
        """Cache statistics."""
        return {"total_entries": len(self._store), "max_entries": self.max_entries}
