"""
Cache Port - Interface for the search result cache.

Implementations:
- MemoryCacheAdapter: In-process LRU with per-entry expiry
- RedisCacheAdapter: Redis-backed, shared between processes
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


class CachePort(ABC):
    """Port: Size/TTL bounded key -> search result store."""

    # True when get/put do network I/O; callers then run them off the event loop
    blocking: bool = False

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """
        Get a cached value.

        Args:
            key: Cache key

        Returns:
            Cached value, or None if absent or expired
        """
        pass

    @abstractmethod
    def put(self, key: str, value: Any) -> None:
        """
        Store a value.

        Args:
            key: Cache key
            value: JSON-compatible value (list of entry dicts)
        """
        pass

    @abstractmethod
    def fresh(self) -> "CachePort":
        """
        Create an empty cache with the same size and expiry settings.

        Used for whole-cache invalidation: the owner drops this instance
        and keeps the returned one.

        Returns:
            New, empty cache
        """
        pass
