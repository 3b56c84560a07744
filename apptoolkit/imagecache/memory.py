"""Memory tier of the image cache.

A bounded mapping of cache key to payload. The memory tier is a volatile
accelerator: anything it holds can be dropped and rebuilt from disk.

Eviction is insertion-order by default: when the store is full, the key
that was inserted first is removed, and reading a key does not change its
position. With strict_lru enabled, reads and writes move a key to the back
so the least recently used key is evicted instead.
"""

from __future__ import annotations

import logging
from collections import OrderedDict

logger = logging.getLogger(__name__)


class MemoryStore:
    """Bounded key to bytes mapping."""

    def __init__(self, max_items: int, strict_lru: bool = False) -> None:
        if max_items < 1:
            raise ValueError("max_items must be at least 1")
        self.max_items = max_items
        self.strict_lru = strict_lru
        self._items: OrderedDict[str, bytes] = OrderedDict()

    def get(self, key: str) -> bytes | None:
        data = self._items.get(key)
        if data is not None and self.strict_lru:
            self._items.move_to_end(key)
        return data

    def put(self, key: str, data: bytes) -> str | None:
        """Insert or replace a payload.

        Replacing an existing key never evicts anything.

        Returns:
            The evicted key, if the store was full.
        """
        if key in self._items:
            self._items[key] = data
            if self.strict_lru:
                self._items.move_to_end(key)
            return None

        evicted: str | None = None
        if len(self._items) >= self.max_items:
            evicted, _ = self._items.popitem(last=False)
            logger.debug("Evicted %s from memory cache", evicted)

        self._items[key] = data
        return evicted

    def discard(self, key: str) -> None:
        self._items.pop(key, None)

    def clear(self) -> None:
        self._items.clear()

    def keys(self) -> list[str]:
        """Return keys in eviction order (next to be evicted first)."""
        return list(self._items)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)


__all__ = ["MemoryStore"]
