"""Tests for the TTL cache."""

import pytest

from bridgewatch.cache import DEFAULT_TTL, TTLCache


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return TTLCache(ttl=60.0, clock=clock)


class TestTTLCache:
    """Test cache storage and expiry."""

    def test_default_ttl(self):
        """Test default TTL is one minute."""
        assert TTLCache().ttl == DEFAULT_TTL == 60.0

    def test_rejects_non_positive_ttl(self):
        """Test TTL must be positive."""
        with pytest.raises(ValueError):
            TTLCache(ttl=0)

    def test_miss(self, cache):
        """Test missing keys return None."""
        assert cache.get("volumes:24h") is None

    def test_hit_before_expiry(self, cache, clock):
        """Test values are returned while fresh."""
        cache.set("volumes:24h", [1, 2, 3])
        clock.advance(59.9)
        assert cache.get("volumes:24h") == [1, 2, 3]

    def test_expires_at_ttl(self, cache, clock):
        """Test values expire exactly at the TTL and are evicted on read."""
        cache.set("listed_assets", "assets")
        clock.advance(60.0)

        assert cache.get("listed_assets") is None
        assert len(cache) == 0

    def test_expired_entries_kept_until_read(self, cache, clock):
        """Test eviction is lazy."""
        cache.set("a", 1)
        clock.advance(120.0)
        assert len(cache) == 1

    def test_overwrite_refreshes_expiry(self, cache, clock):
        """Test set restarts the TTL."""
        cache.set("a", 1)
        clock.advance(50.0)
        cache.set("a", 2)
        clock.advance(50.0)
        assert cache.get("a") == 2

    def test_contains_ignores_expired(self, cache, clock):
        """Test membership does not report expired entries or evict them."""
        cache.set("a", 1)
        assert "a" in cache

        clock.advance(60.0)
        assert "a" not in cache
        assert len(cache) == 1

    def test_delete_and_clear(self, cache):
        """Test explicit removal."""
        cache.set("a", 1)
        cache.set("b", 2)

        assert cache.delete("a") is True
        assert cache.delete("a") is False

        cache.clear()
        assert len(cache) == 0
