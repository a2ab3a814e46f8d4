"""
Unit tests for the in-process TTL cache.
"""
import pytest

from astroai.core.cache import TTLCache


def test_get_returns_value_until_expiry(clock):
    """Entry stays readable while now <= expiry."""
    cache = TTLCache(default_ttl=10, clock=clock)
    cache.set("k", "v")

    clock.advance(10)
    assert cache.get("k") == "v"


def test_get_misses_strictly_after_expiry(clock):
    cache = TTLCache(default_ttl=10, clock=clock)
    cache.set("k", "v")

    clock.advance(10.001)
    assert cache.get("k") is None
    assert cache.get("k", "fallback") == "fallback"


def test_expired_entry_is_evicted_on_read(clock):
    cache = TTLCache(default_ttl=5, clock=clock)
    cache.set("k", "v")
    clock.advance(6)

    assert "k" not in cache
    assert cache.expires_at("k") is None
    assert cache.items() == []


def test_per_entry_ttl_overrides_default(clock):
    cache = TTLCache(default_ttl=100, clock=clock)
    cache.set("short", 1, ttl=1)
    cache.set("long", 2)

    clock.advance(2)
    assert cache.get("short") is None
    assert cache.get("long") == 2


def test_set_restarts_expiry(clock):
    """Rewriting a key gives it a fresh lifetime (sliding expiry)."""
    cache = TTLCache(default_ttl=10, clock=clock)
    cache.set("k", 1)
    clock.advance(8)
    cache.set("k", 2)
    clock.advance(8)

    assert cache.get("k") == 2


def test_size_purges_expired_entries(clock):
    cache = TTLCache(default_ttl=10, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2, ttl=1)
    clock.advance(5)

    assert cache.size() == 1
    assert len(cache) == 1
    assert list(cache) == ["a"]


def test_purge_expired_returns_count(clock):
    cache = TTLCache(default_ttl=1, clock=clock)
    for i in range(3):
        cache.set(i, i)
    clock.advance(2)

    assert cache.purge_expired() == 3
    assert cache.purge_expired() == 0


def test_delete_and_clear(clock):
    cache = TTLCache(clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)

    assert cache.delete("a") is True
    assert cache.delete("a") is False
    cache.clear()
    assert cache.size() == 0


def test_stores_falsy_values(clock):
    cache = TTLCache(clock=clock)
    cache.set("zero", 0)

    assert cache.has("zero")
    assert cache.get("zero", 42) == 0


@pytest.mark.parametrize("ttl", [0, -1])
def test_rejects_non_positive_ttl(ttl):
    with pytest.raises(ValueError):
        TTLCache(default_ttl=ttl)
    with pytest.raises(ValueError):
        TTLCache().set("k", "v", ttl=ttl)
