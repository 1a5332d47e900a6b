"""Tests for BoundedTTLCache with a controllable clock."""
from buildapp.utils.ttl_cache import BoundedTTLCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestBoundedTTLCache:
    def setup_method(self):
        self.clock = FakeClock()
        self.cache = BoundedTTLCache(maxsize=2, ttl_seconds=60, clock=self.clock)

    def test_entries_expire_after_ttl(self):
        self.cache.set("sup_a", {"trust_score": 4.5})
        self.clock.now = 60
        assert self.cache.get("sup_a") == {"trust_score": 4.5}

        self.clock.now = 61
        assert self.cache.get("sup_a") is None
        assert self.cache.stats["expired"] == 1

    def test_least_recently_used_is_evicted(self):
        self.cache.set("a", 1)
        self.cache.set("b", 2)
        self.cache.get("a")
        self.cache.set("c", 3)

        assert self.cache.get("b") is None
        assert self.cache.get("a") == 1
        assert self.cache.stats["evictions"] == 1

    def test_get_or_load_caches_values_but_not_none(self):
        calls = []

        def loader():
            calls.append(1)
            return None if len(calls) == 1 else {"trust_score": 3.0}

        assert self.cache.get_or_load("sup_a", loader) is None
        assert self.cache.get_or_load("sup_a", loader) == {"trust_score": 3.0}
        assert self.cache.get_or_load("sup_a", loader) == {"trust_score": 3.0}
        assert len(calls) == 2

    def test_cleanup_expired(self):
        self.cache.set("a", 1)
        self.clock.now = 30
        self.cache.set("b", 2)
        self.clock.now = 70

        assert self.cache.cleanup_expired() == 1
        assert len(self.cache) == 1
