"""
Unit tests for the verdict cache.
"""

import asyncio

import pytest

from quest_verifier.verification.cache import ResultCache, make_cache_key


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestMakeCacheKey:
    """Tests for cache key composition."""

    def test_campaign_key(self):
        key = make_cache_key("alpha", "0xABC", campaign_id="summer")
        assert key == "alpha:summer:0xabc"

    def test_custom_range_key(self):
        key = make_cache_key("alpha", "0xABC", start_timestamp=10, end_timestamp=20)
        assert key == "alpha:custom:0xabc:10:20"

    def test_all_time_key(self):
        assert make_cache_key("alpha", "0xABC") == "alpha:all:0xabc"

    def test_campaign_takes_precedence_over_bounds(self):
        key = make_cache_key(
            "alpha", "0xabc", campaign_id="summer", start_timestamp=1, end_timestamp=2
        )
        assert key == "alpha:summer:0xabc"

    def test_contracts_never_share_keys(self):
        assert make_cache_key("alpha", "0xabc") != make_cache_key("beta", "0xabc")


class TestResultCache:
    """Tests for TTL semantics."""

    def test_get_missing_is_none(self):
        cache = ResultCache()
        assert cache.get("nope") is None

    def test_negative_verdicts_are_stored(self):
        """False is a real value, not a miss."""
        cache = ResultCache()
        cache.set("k", False)
        assert cache.get("k") is False

    def test_expired_read_is_absent_without_sweep(self):
        """Correctness does not depend on the sweeper having run."""
        clock = FakeClock()
        cache = ResultCache(default_ttl=60, clock=clock)
        cache.set("k", True)

        clock.now += 59
        assert cache.get("k") is True

        clock.now += 1
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_ttl_is_not_sliding(self):
        """Reads do not extend an entry's lifetime."""
        clock = FakeClock()
        cache = ResultCache(default_ttl=10, clock=clock)
        cache.set("k", True)
        for _ in range(3):
            clock.now += 4
            cache.get("k")
        assert cache.get("k") is None

    def test_custom_ttl(self):
        clock = FakeClock()
        cache = ResultCache(default_ttl=10, clock=clock)
        cache.set("k", True, ttl=100)
        clock.now += 50
        assert cache.get("k") is True

    def test_clear_removes_everything(self):
        cache = ResultCache()
        cache.set("alpha:all:0xabc", True)
        cache.set("beta:all:0xabc", False)
        cache.clear()
        assert len(cache) == 0
        assert cache.get("alpha:all:0xabc") is None

    def test_write_from_before_clear_is_dropped(self):
        cache = ResultCache()
        generation = cache.generation
        cache.clear()

        assert cache.set("alpha:all:0xabc", True, generation=generation) is False
        assert cache.get("alpha:all:0xabc") is None

        assert cache.set("alpha:all:0xabc", True, generation=cache.generation) is True
        assert cache.get("alpha:all:0xabc") is True

    def test_cleanup_expired(self):
        clock = FakeClock()
        cache = ResultCache(default_ttl=10, clock=clock)
        cache.set("old", True)
        clock.now += 5
        cache.set("new", True)
        clock.now += 6

        assert cache.cleanup_expired() == 1
        assert cache.get("new") is True
        assert cache.get_stats() == {
            "total_entries": 1,
            "active_entries": 1,
            "expired_entries": 0,
        }

    @pytest.mark.asyncio
    async def test_periodic_cleanup_task(self):
        """The sweep task evicts expired entries and stops cleanly."""
        clock = FakeClock()
        cache = ResultCache(default_ttl=1, clock=clock)
        cache.set("k", True)
        clock.now += 5

        cache.start_cleanup_task(interval=0.01)
        await asyncio.sleep(0.05)
        await cache.stop_cleanup_task()

        assert len(cache) == 0
        assert cache._cleanup_task is None
