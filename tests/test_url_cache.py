"""Tests for the signed URL cache."""

import pytest

from cyclofit.shared.storage.url_cache import SignedUrlCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestSignedUrlCache:
    """LRU eviction and TTL expiry."""

    def test_hit_before_expiry(self):
        """A fresh entry is returned."""
        clock = FakeClock()
        cache = SignedUrlCache(max_size=2, ttl_seconds=300, clock=clock)
        cache.set("a", "url-a")
        clock.now += 299
        assert cache.get("a") == "url-a"

    def test_expired_entry_is_dropped(self):
        """Entries older than the TTL miss and are removed."""
        clock = FakeClock()
        cache = SignedUrlCache(max_size=2, ttl_seconds=300, clock=clock)
        cache.set("a", "url-a")
        clock.now += 300
        assert cache.get("a") is None
        assert len(cache) == 0

    def test_evicts_least_recently_used(self):
        """Reading an entry protects it from eviction."""
        cache = SignedUrlCache(max_size=2, ttl_seconds=300, clock=FakeClock())
        cache.set("a", "url-a")
        cache.set("b", "url-b")
        cache.get("a")
        cache.set("c", "url-c")
        assert cache.get("a") == "url-a"
        assert cache.get("b") is None
        assert cache.get("c") == "url-c"

    def test_never_exceeds_max_size(self):
        cache = SignedUrlCache(max_size=20, ttl_seconds=300)
        for i in range(50):
            cache.set(f"k{i}", f"url{i}")
        assert len(cache) == 20

    def test_invalidate(self):
        cache = SignedUrlCache()
        cache.set("a", "url-a")
        cache.invalidate("a")
        cache.invalidate("missing")
        assert cache.get("a") is None

    def test_rejects_zero_size(self):
        with pytest.raises(ValueError):
            SignedUrlCache(max_size=0)
