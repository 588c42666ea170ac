"""
Unit tests for the tiered activity scanner.
"""

import logging
import time

import pytest

from quest_verifier.verification.probe import RangeProbe
from quest_verifier.verification.scanner import ActivityScanner, around, sample_points
from tests.conftest import HEAD_BLOCK, OTHER_USER, USER


def make_scanner(settings) -> ActivityScanner:
    return ActivityScanner(settings, RangeProbe(settings))


def far_deadline() -> float:
    return time.monotonic() + 60


class TestSamplePoints:
    """Tests for sample point construction."""

    def test_includes_window_edges(self):
        points = sample_points(1, 300_000, 20, 10)
        assert 1 in points
        assert 300_000 in points

    def test_descending_and_unique(self):
        points = sample_points(1, 300_000, 20, 10)
        assert points == sorted(set(points), reverse=True)
        assert len(points) <= 30

    def test_middle_half_is_denser(self):
        start, end = 1, 300_000
        points = sample_points(start, end, 20, 10)
        middle = [p for p in points if 75_000 <= p <= 225_000]
        outer = [p for p in points if p < 75_000 or p > 225_000]
        assert len(middle) > len(outer)

    def test_small_window_deduplicates(self):
        assert sample_points(10, 12, 20, 10) == [12, 11, 10]

    def test_around_clamps_to_window(self):
        assert around(5, 250, 1, 1000) == (1, 255)
        assert around(990, 250, 1, 1000) == (740, 1000)


class TestActivityScanner:
    """Tests for has_activity."""

    @pytest.mark.asyncio
    async def test_recent_window_hit(self, ledgers, engine_settings):
        """Recent blocks are checked first and end the scan on a hit."""
        client = ledgers["alpha"]
        client.add_transfer(HEAD_BLOCK - 10, OTHER_USER, USER)

        scanner = make_scanner(engine_settings)
        assert await scanner.has_activity(client, USER, 1, HEAD_BLOCK, far_deadline())
        assert client.calls.count("logs") == 2

    @pytest.mark.asyncio
    async def test_sequential_scan_finds_receiver(self, ledgers, engine_settings):
        client = ledgers["alpha"]
        client.add_transfer(5_000, OTHER_USER, USER)

        scanner = make_scanner(engine_settings)
        assert await scanner.has_activity(client, USER, 1, 10_000, far_deadline())

    @pytest.mark.asyncio
    async def test_sequential_scan_no_activity(self, ledgers, engine_settings):
        client = ledgers["alpha"]
        client.add_transfer(5_000, OTHER_USER, OTHER_USER)

        scanner = make_scanner(engine_settings)
        assert not await scanner.has_activity(client, USER, 1, 10_000, far_deadline())
        # 100 recent blocks, then 9,900 blocks in 1,000-block chunks, two filters each
        assert client.calls.count("logs") == 2 + 10 * 2

    @pytest.mark.asyncio
    async def test_sampling_hits_sample_point(self, ledgers, engine_settings):
        """Large windows are sampled; activity near a sample point is found."""
        client = ledgers["alpha"]
        client.add_transfer(75_100, USER, OTHER_USER)

        scanner = make_scanner(engine_settings)
        assert await scanner.has_activity(client, USER, 1, HEAD_BLOCK, far_deadline())

    @pytest.mark.asyncio
    async def test_final_sweep_around_midpoint(self, ledgers, engine_settings):
        client = ledgers["alpha"]
        midpoint = 1 + (HEAD_BLOCK - 1) // 2
        client.add_transfer(midpoint + 2_000, USER, OTHER_USER)

        scanner = make_scanner(engine_settings)
        assert await scanner.has_activity(client, USER, 1, HEAD_BLOCK, far_deadline())

    @pytest.mark.asyncio
    async def test_sampling_misses_sparse_activity(self, ledgers, engine_settings):
        """
        Known boundary: a single transfer between sample points is not found.

        Sampling trades recall for a bounded query count on huge windows.
        """
        client = ledgers["alpha"]
        client.add_transfer(1_000, OTHER_USER, USER)

        scanner = make_scanner(engine_settings)
        assert not await scanner.has_activity(
            client, USER, 1, HEAD_BLOCK, far_deadline()
        )

    @pytest.mark.asyncio
    async def test_deadline_stops_sampling(self, ledgers, engine_settings):
        client = ledgers["alpha"]
        client.add_transfer(75_100, USER, OTHER_USER)

        scanner = make_scanner(engine_settings)
        expired = time.monotonic() - 1
        assert not await scanner.has_activity(client, USER, 1, HEAD_BLOCK, expired)
        # Only the recent window was queried
        assert client.calls.count("logs") == 2

    @pytest.mark.asyncio
    async def test_deadline_stops_sequential_scan(self, ledgers, engine_settings):
        client = ledgers["alpha"]
        client.add_transfer(5_000, OTHER_USER, USER)

        scanner = make_scanner(engine_settings)
        expired = time.monotonic() - 1
        assert not await scanner.has_activity(client, USER, 1, 10_000, expired)
        assert client.calls.count("logs") == 2

    @pytest.mark.asyncio
    async def test_failed_queries_reported(self, ledgers, engine_settings, caplog):
        """Exhausted queries are 'no evidence' and reported as coverage gaps."""
        client = ledgers["alpha"]
        client.failing_logs = True

        scanner = make_scanner(engine_settings)
        with caplog.at_level(logging.WARNING):
            assert not await scanner.has_activity(client, USER, 1, 50, far_deadline())

        assert "a negative result is incomplete" in caplog.text

    @pytest.mark.asyncio
    async def test_window_inside_recent_blocks(self, ledgers, engine_settings):
        """Windows shorter than the recent tier are scanned exactly once."""
        client = ledgers["alpha"]
        scanner = make_scanner(engine_settings)
        assert not await scanner.has_activity(client, USER, 1, 50, far_deadline())
        assert client.calls.count("logs") == 2
