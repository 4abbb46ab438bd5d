"""
Redis Cache Adapter - Redis-backed search result cache.
"""

import json
import secrets
from typing import Any, Optional

from ufds_client.ports.cache_port import CachePort


class RedisCacheAdapter(CachePort):
    """
    Redis-backed search result cache.

    Results are stored as JSON with automatic expiration (TTL).
    Every instance writes under its own generation prefix, so fresh()
    invalidates everything at once: the previous generation is simply
    never read again and ages out through its TTL.

    Entry count is bounded by Redis memory policy, not by `size`.
    """

    blocking = True

    def __init__(
        self,
        redis_client=None,
        url: str = "redis://localhost:6379/0",
        size: int = 1000,
        expiry: int = 60,
        prefix: str = "ufds:cache:",
    ):
        """
        Initialize Redis cache adapter.

        Args:
            redis_client: Redis client instance (redis.Redis)
            url: Redis URL used when no client is given
            size: Advisory size, carried over to fresh instances
            expiry: Entry lifetime in seconds
            prefix: Key prefix for cache entries
        """
        if expiry <= 0:
            raise ValueError("cache expiry must be positive")

        self._redis = redis_client
        self._url = url
        self._size = size
        self._expiry = int(expiry)
        self._prefix = prefix
        self._generation = secrets.token_hex(8)

    def _get_redis(self):
        """Lazy load Redis client."""
        if self._redis is None:
            try:
                import redis
                self._redis = redis.Redis.from_url(self._url, decode_responses=True)
            except ImportError:
                raise ImportError("redis package required: pip install redis")
        return self._redis

    def _key(self, key: str) -> str:
        """Generate Redis key for a cache entry."""
        return f"{self._prefix}{self._generation}:{key}"

    def get(self, key: str) -> Optional[Any]:
        """Get a cached value (None if absent or expired)."""
        data = self._get_redis().get(self._key(key))
        if not data:
            return None

        try:
            return json.loads(data)
        except (json.JSONDecodeError, TypeError):
            return None

    def put(self, key: str, value: Any) -> None:
        """Store a value with TTL."""
        self._get_redis().setex(self._key(key), self._expiry, json.dumps(value))

    def fresh(self) -> "RedisCacheAdapter":
        """Empty cache (new generation) sharing the same Redis client."""
        return RedisCacheAdapter(
            redis_client=self._get_redis(),
            url=self._url,
            size=self._size,
            expiry=self._expiry,
            prefix=self._prefix,
        )
