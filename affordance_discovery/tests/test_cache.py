"""Tests for the bounded TTL cache."""

import pytest

from affordance_discovery.cache import TTLCache, make_key
from affordance_discovery.models import PackageRecord


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    c = TTLCache(ttl=10.0, max_size=3, clock=clock, sweep=False)
    yield c
    c.close()


class TestGetSet:
    def test_roundtrip(self, cache):
        cache.set("a", {"x": 1})
        assert cache.get("a") == {"x": 1}

    def test_miss_returns_none(self, cache):
        assert cache.get("missing") is None

    def test_has_and_delete(self, cache):
        cache.set("a", 1)
        assert cache.has("a")
        assert cache.delete("a") is True
        assert cache.delete("a") is False
        assert not cache.has("a")

    def test_clear(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)
        cache.clear()
        assert len(cache) == 0

    def test_cached_value_is_same_object(self, cache):
        record = PackageRecord(name="vitest", version="^1.0.0")
        cache.set("k", record)
        assert cache.get("k") is record


class TestExpiry:
    def test_expires_lazily_on_get(self, cache, clock):
        cache.set("a", 1)
        clock.advance(10.0)
        assert cache.get("a") == 1
        clock.advance(0.1)
        assert cache.get("a") is None
        assert len(cache) == 0

    def test_per_entry_ttl(self, cache, clock):
        cache.set("short", 1, ttl=1.0)
        cache.set("long", 2)
        clock.advance(2.0)
        assert cache.get("short") is None
        assert cache.get("long") == 2

    def test_sweep_removes_only_expired(self, cache, clock):
        cache.set("old", 1)
        clock.advance(6.0)
        cache.set("new", 2)
        clock.advance(5.0)
        assert cache.sweep_expired() == 1
        assert cache.has("new")
        assert len(cache) == 1


class TestCapacity:
    def test_never_exceeds_max_size(self, cache):
        for i in range(20):
            cache.set(f"k{i}", i)
            assert len(cache) <= 3
        assert len(cache) == 3

    def test_evicts_oldest_inserted(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)
        cache.set("d", 4)
        assert cache.get("a") is None
        assert cache.get("b") == 2
        assert cache.get("d") == 4

    def test_reset_keeps_eviction_position(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)
        cache.set("a", 10)
        assert len(cache) == 3
        cache.set("d", 4)
        assert cache.get("a") is None
        assert cache.get("b") == 2

    def test_reading_does_not_refresh_order(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)
        cache.get("a")
        cache.set("d", 4)
        assert not cache.has("a")


class TestStats:
    def test_counts_hits_and_misses(self, cache):
        cache.set("a", 1)
        cache.get("a")
        cache.get("nope")
        stats = cache.stats()
        assert stats.size == 1
        assert stats.max_size == 3
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.hit_rate == 0.5

    def test_memory_estimate_grows(self, cache):
        empty = cache.stats().approx_memory
        cache.set("key", PackageRecord(name="react", version="18.2.0"))
        assert cache.stats().approx_memory > empty


class TestMakeKey:
    def test_drops_none(self):
        assert make_key("validate", "javascript", None, "x") == "validate:javascript:x"

    def test_identical_inputs_identical_keys(self):
        assert make_key("discover", "go", False, 50) == make_key("discover", "go", False, 50)

    def test_distinguishes_values(self):
        assert make_key("discover", True) != make_key("discover", False)

    def test_delimiter_inside_part_is_escaped(self):
        assert make_key("validate", "import os:/tmp/x", None) != make_key("validate", "import os", "/tmp/x")
        assert make_key("validate", "a:b") == "validate:a\\:b"

    def test_backslash_cannot_forge_escape(self):
        assert make_key("a\\", "b") != make_key("a\\:b")


class TestConstruction:
    def test_rejects_bad_limits(self):
        with pytest.raises(ValueError):
            TTLCache(ttl=0, sweep=False)
        with pytest.raises(ValueError):
            TTLCache(max_size=0, sweep=False)

    def test_sweeper_thread_stops(self):
        c = TTLCache(ttl=0.05, max_size=10)
        c.set("a", 1)
        c.close()
        assert c._sweeper is None
