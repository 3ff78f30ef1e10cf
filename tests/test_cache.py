"""
Tests for the TTL caches (fake clock, lazy expiry, size bound).
"""
from datetime import date, datetime, timedelta, timezone

from attune.services.cache import SynthesisCache, TTLCache

T0 = datetime(2026, 10, 18, 8, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class TestTTLCache:
    def test_hit_before_ttl(self):
        clock = FakeClock()
        cache = TTLCache(ttl=timedelta(hours=24), clock=clock)
        cache.put("k", "v")
        clock.advance(hours=23, minutes=59, seconds=59)
        entry = cache.get("k")
        assert entry is not None
        assert entry.value == "v"
        assert entry.cached_at == T0

    def test_miss_at_exactly_ttl(self):
        clock = FakeClock()
        cache = TTLCache(ttl=timedelta(hours=24), clock=clock)
        cache.put("k", "v")
        clock.advance(hours=24)
        assert cache.get("k") is None

    def test_stale_entry_dropped_on_read(self):
        clock = FakeClock()
        cache = TTLCache(ttl=timedelta(minutes=5), clock=clock)
        cache.put("k", "v")
        clock.advance(minutes=10)
        assert len(cache) == 1
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_put_restarts_ttl(self):
        clock = FakeClock()
        cache = TTLCache(ttl=timedelta(hours=1), clock=clock)
        cache.put("k", "old")
        clock.advance(minutes=50)
        cache.put("k", "new")
        clock.advance(minutes=50)
        assert cache.get("k").value == "new"

    def test_max_entries_evicts_oldest(self):
        cache = TTLCache(ttl=timedelta(hours=1), clock=FakeClock(), max_entries=2)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.put("c", 3)
        assert cache.get("a") is None
        assert cache.get("b").value == 2
        assert cache.get("c").value == 3

    def test_put_evicts_expired_entries(self):
        clock = FakeClock()
        cache = TTLCache(ttl=timedelta(hours=1), clock=clock)
        cache.put("a", 1)
        cache.put("b", 2)
        clock.advance(minutes=61)
        cache.put("c", 3)
        assert len(cache) == 1
        assert cache.get("c").value == 3

    def test_invalidate_and_clear(self):
        cache = TTLCache(ttl=timedelta(hours=1), clock=FakeClock())
        cache.put("a", 1)
        cache.put("b", 2)
        cache.invalidate("a")
        assert cache.get("a") is None
        cache.clear()
        assert len(cache) == 0


class TestSynthesisCache:
    def test_key_format(self):
        assert SynthesisCache.key("u1", date(2026, 10, 18)) == "attunement:u1:2026-10-18"

    def test_expiry_against_read_time(self):
        clock = FakeClock()
        cache = SynthesisCache(clock=clock)
        day = T0.date()
        cache.put("u1", day, {"answer": "x"})

        clock.advance(hours=23)
        hit = cache.get("u1", day)
        assert hit is not None
        assert hit.record == {"answer": "x"}
        assert hit.cached_at == T0

        clock.advance(hours=1)
        assert cache.get("u1", day) is None

    def test_users_and_days_are_independent(self):
        cache = SynthesisCache(clock=FakeClock())
        day = T0.date()
        cache.put("u1", day, "one")
        assert cache.get("u2", day) is None
        assert cache.get("u1", day + timedelta(days=1)) is None

    def test_invalidate(self):
        cache = SynthesisCache(clock=FakeClock())
        day = T0.date()
        cache.put("u1", day, "one")
        cache.invalidate("u1", day)
        assert cache.get("u1", day) is None
        assert len(cache) == 0

    def test_earlier_days_do_not_accumulate(self):
        clock = FakeClock()
        cache = SynthesisCache(clock=clock)
        for _ in range(30):
            cache.put("u1", clock.now.date(), "answer")
            clock.advance(days=1)
        assert len(cache) == 1

    def test_bounded_by_max_entries(self):
        cache = SynthesisCache(clock=FakeClock(), max_entries=3)
        day = T0.date()
        for i in range(5):
            cache.put(f"u{i}", day, i)
        assert len(cache) == 3
        assert cache.get("u0", day) is None
        assert cache.get("u4", day).record == 4
