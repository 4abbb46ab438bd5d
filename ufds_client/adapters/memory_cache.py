"""
Memory Cache Adapter - In-process LRU cache with per-entry expiry.
"""

import threading
import time
from collections import OrderedDict
from typing import Any, Optional, Tuple

from ufds_client.ports.cache_port import CachePort


class MemoryCacheAdapter(CachePort):
    """
    In-memory search result cache.

    Least recently used entries are evicted once `size` is reached; an
    entry older than `expiry` seconds is treated as absent.
    """

    def __init__(self, size: int = 1000, expiry: float = 60):
        """
        Initialize in-memory cache.

        Args:
            size: Maximum number of entries
            expiry: Entry lifetime in seconds
        """
        if size <= 0:
            raise ValueError("cache size must be positive")
        if expiry <= 0:
            raise ValueError("cache expiry must be positive")

        self._size = size
        self._expiry = expiry
        self._entries: "OrderedDict[str, Tuple[float, Any]]" = OrderedDict()
        self._lock = threading.Lock()

    @property
    def size(self) -> int:
        return self._size

    @property
    def expiry(self) -> float:
        return self._expiry

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[Any]:
        """Get a cached value (None if absent or expired)."""
        with self._lock:
            item = self._entries.get(key)
            if item is None:
                return None

            expires_at, value = item
            if time.monotonic() >= expires_at:
                del self._entries[key]
                return None

            self._entries.move_to_end(key)
            return value

    def put(self, key: str, value: Any) -> None:
        """Store a value, evicting the least recently used entry if full."""
        with self._lock:
            self._entries[key] = (time.monotonic() + self._expiry, value)
            self._entries.move_to_end(key)

            while len(self._entries) > self._size:
                self._entries.popitem(last=False)

    def fresh(self) -> "MemoryCacheAdapter":
        """Empty cache with the same settings."""
        return MemoryCacheAdapter(size=self._size, expiry=self._expiry)
