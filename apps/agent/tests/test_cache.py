"""Tests for the TTL cache."""

from tmagent.warehouse.cache import TTLCache

from tests.fakes import FakeClock


class TestTTLCache:
    def test_hit_before_expiry_and_miss_after(self):
        clock = FakeClock()
        cache = TTLCache(default_ttl=300, clock=clock)
        cache.set("k", "v", ttl=0.1)

        assert cache.get("k") == "v"
        clock.advance(0.15)
        assert cache.get("k") is None

    def test_expired_entry_dropped_on_read(self):
        clock = FakeClock()
        cache = TTLCache(default_ttl=1, clock=clock)
        cache.set("k", [1, 2])
        clock.advance(5)
        assert len(cache) == 1  # no sweeper
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_entry_invalid_exactly_at_ttl(self):
        clock = FakeClock()
        cache = TTLCache(default_ttl=10, clock=clock)
        cache.set("k", "v")
        clock.advance(10)
        assert cache.get("k") is None

    def test_set_overwrites_and_resets_age(self):
        clock = FakeClock()
        cache = TTLCache(default_ttl=10, clock=clock)
        cache.set("k", "old")
        clock.advance(8)
        cache.set("k", "new")
        clock.advance(8)
        assert cache.get("k") == "new"

    def test_empty_list_is_a_hit(self):
        cache = TTLCache(default_ttl=10, clock=FakeClock())
        cache.set("k", [])
        assert cache.get("k") == []

    def test_delete_and_clear(self):
        cache = TTLCache(default_ttl=10, clock=FakeClock())
        cache.set("a", 1)
        cache.set("b", 2)
        cache.delete("a")
        cache.delete("missing")
        assert cache.get("a") is None
        cache.clear()
        assert len(cache) == 0
