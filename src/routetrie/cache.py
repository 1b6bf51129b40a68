"""Bounded route match cache.

Entries are evicted in insertion order once the cache is full. This is a
FIFO approximation of LRU: reading an entry does not refresh it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from routetrie.tree import RouteMatch

logger = logging.getLogger(__name__)


class RouteCache:
    __slots__ = ("_entries", "max_size")

    def __init__(self, max_size: int = 1000) -> None:
        if max_size < 0:
            msg = f"max_size must be >= 0, got {max_size}"
            raise ValueError(msg)
        self.max_size = max_size
        self._entries: dict[str, RouteMatch] = {}

    @staticmethod
    def key(method: str | None, path: str) -> str:
        return f"{method or ''}:{path}"

    def get(self, key: str) -> RouteMatch | None:
        return self._entries.get(key)

    def set(self, key: str, match: RouteMatch) -> None:
        if self.max_size == 0:
            return
        if key not in self._entries and len(self._entries) >= self.max_size:
            oldest = next(iter(self._entries))  # dicts keep insertion order
            del self._entries[oldest]
            logger.debug("route cache full, evicted %s", oldest)
        self._entries[key] = match

    def clear(self) -> None:
        if self._entries:
            logger.debug("route cache cleared (%d entries)", len(self._entries))
        self._entries.clear()

    def stats(self) -> dict[str, int]:
        return {"size": len(self._entries), "max_size": self.max_size}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
