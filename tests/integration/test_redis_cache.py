"""
Integration tests for Redis cache adapter.

Requires Redis running on localhost:6379
Skip tests if Redis is not available.
"""

import pytest


@pytest.fixture
def redis_cache():
    """Create Redis cache adapter (skip if Redis unavailable)."""
    redis = pytest.importorskip("redis")
    from ufds_client.adapters import RedisCacheAdapter

    # Test connection
    r = redis.Redis(host="localhost", port=6379, decode_responses=True)
    try:
        r.ping()
    except redis.exceptions.ConnectionError:
        pytest.skip("Redis not available")

    adapter = RedisCacheAdapter(redis_client=r, expiry=30, prefix="test:ufds:")
    yield adapter

    # Cleanup: delete all test entries
    for key in r.scan_iter("test:ufds:*"):
        r.delete(key)


class TestRedisCacheAdapter:
    """Test Redis-backed search cache."""

    def test_put_and_get(self, redis_cache):
        entries = [{"dn": "uuid=1, ou=users, o=smartdc", "login": "alice"}]
        redis_cache.put("ou=users::q", entries)

        assert redis_cache.get("ou=users::q") == entries

    def test_missing_key(self, redis_cache):
        assert redis_cache.get("nothing-here") is None

    def test_entries_expire(self, redis_cache):
        """Test entries carry the configured TTL."""
        redis_cache.put("k", [1])

        key = next(redis_cache._get_redis().scan_iter("test:ufds:*"))
        ttl = redis_cache._get_redis().ttl(key)
        assert 0 < ttl <= 30

    def test_fresh_invalidates_everything(self, redis_cache):
        redis_cache.put("k", [1])

        fresh = redis_cache.fresh()

        assert fresh.get("k") is None
        fresh.put("k", [2])
        assert fresh.get("k") == [2]
        # The old generation still answers for itself
        assert redis_cache.get("k") == [1]


def test_invalid_expiry():
    from ufds_client.adapters import RedisCacheAdapter

    with pytest.raises(ValueError):
        RedisCacheAdapter(expiry=0)
