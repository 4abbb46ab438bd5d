"""
Unit tests for the in-memory search cache.
"""

import pytest

from ufds_client.adapters import MemoryCacheAdapter


def test_put_and_get():
    cache = MemoryCacheAdapter(size=10, expiry=60)
    cache.put("k", [{"dn": "o=smartdc"}])

    assert cache.get("k") == [{"dn": "o=smartdc"}]
    assert cache.get("missing") is None


def test_lru_eviction():
    """Test the least recently used entry goes first."""
    cache = MemoryCacheAdapter(size=2, expiry=60)
    cache.put("a", 1)
    cache.put("b", 2)
    cache.get("a")  # a is now most recent
    cache.put("c", 3)

    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert cache.get("c") == 3
    assert len(cache) == 2


def test_expiry(monkeypatch):
    """Test entries older than expiry are treated as absent."""
    now = [1000.0]
    monkeypatch.setattr("ufds_client.adapters.memory_cache.time.monotonic", lambda: now[0])

    cache = MemoryCacheAdapter(size=10, expiry=5)
    cache.put("k", "v")

    now[0] += 4.9
    assert cache.get("k") == "v"

    now[0] += 0.2
    assert cache.get("k") is None
    assert len(cache) == 0


def test_fresh_is_empty_with_same_settings():
    cache = MemoryCacheAdapter(size=7, expiry=3)
    cache.put("k", "v")

    fresh = cache.fresh()

    assert fresh is not cache
    assert fresh.get("k") is None
    assert fresh.size == 7
    assert fresh.expiry == 3
    # The old instance is untouched
    assert cache.get("k") == "v"


@pytest.mark.parametrize("size,expiry", [(0, 60), (10, 0), (-1, 5)])
def test_invalid_settings(size, expiry):
    with pytest.raises(ValueError):
        MemoryCacheAdapter(size=size, expiry=expiry)
