"""
Activity scanner.

Fallback search for interaction logs across a block window that may be far
larger than anything a provider will return in one query. The scan is tiered
and exits on the first hit:

1. the most recent ``recent_blocks`` of the window;
2. for windows wider than ``large_range_threshold``, strategic sampling:
   evenly spaced points across the window plus a denser set in its middle
   half, each probed with a small radius, then one wider sweep around the
   midpoint;
3. otherwise a newest-first sequential scan in provider-sized chunks.

Sampling accepts false negatives on sparse activity between sample points.
Every tier stops once the verification deadline has passed.
"""

import time
from typing import List, Tuple

from quest_verifier.ledger.client import LedgerClient
from quest_verifier.ledger.query import QueryStats
from quest_verifier.shared.logging import get_logger
from quest_verifier.shared.settings import EngineSettings
from quest_verifier.verification.probe import RangeProbe, split_range

logger = get_logger(__name__)


def sample_points(
    start_block: int, end_block: int, count: int, mid_count: int
) -> List[int]:
    """
    Sample blocks for a large window, newest first.

    ``count`` points are spread evenly over the whole window and
    ``mid_count`` more over its middle 50%. Duplicates are removed.
    """
    span = end_block - start_block
    points = set()

    if count > 1:
        step = span / (count - 1)
        points.update(round(start_block + i * step) for i in range(count))
    elif count == 1:
        points.add(start_block + span // 2)

    mid_low = start_block + span // 4
    mid_high = start_block + (3 * span) // 4
    if mid_count > 1:
        step = (mid_high - mid_low) / (mid_count - 1)
        points.update(round(mid_low + i * step) for i in range(mid_count))
    elif mid_count == 1:
        points.add(start_block + span // 2)

    return sorted(points, reverse=True)


def around(point: int, radius: int, start_block: int, end_block: int) -> Tuple[int, int]:
    """Clamp ``[point - radius, point + radius]`` to the window."""
    return max(start_block, point - radius), min(end_block, point + radius)


class ActivityScanner:
    """Tiered log search over a block window under a deadline."""

    def __init__(self, settings: EngineSettings, probe: RangeProbe):
        self.settings = settings
        self.probe = probe

    @staticmethod
    def _expired(deadline: float) -> bool:
        return time.monotonic() >= deadline

    async def has_activity(
        self,
        client: LedgerClient,
        address: str,
        start_block: int,
        end_block: int,
        deadline: float,
    ) -> bool:
        """
        Search [start_block, end_block] for interaction logs.

        Args:
            client: Ledger client for the contract
            address: Normalized wallet address
            start_block: First block of the window
            end_block: Last block of the window (inclusive)
            deadline: ``time.monotonic()`` value after which scanning stops

        Returns:
            True on the first matching log, False otherwise
        """
        if end_block < start_block:
            return False

        stats = QueryStats()
        try:
            recent_start = max(start_block, end_block - self.settings.recent_blocks + 1)
            if await self.probe.has_logs(
                client, address, recent_start, end_block, stats
            ):
                logger.info(
                    f"Recent activity found for {address} on {client.contract_id}"
                )
                return True

            if recent_start == start_block:
                return False

            if end_block - start_block > self.settings.large_range_threshold:
                found = await self._sample(
                    client, address, start_block, end_block, deadline, stats
                )
            else:
                found = await self._sequential(
                    client, address, start_block, recent_start - 1, deadline, stats
                )
            return found
        finally:
            if not stats.complete:
                logger.warning(
                    f"Scan for {address} on {client.contract_id} had "
                    f"{stats.failures}/{stats.queries} failed queries; "
                    f"a negative result is incomplete"
                )

    async def _sample(
        self,
        client: LedgerClient,
        address: str,
        start_block: int,
        end_block: int,
        deadline: float,
        stats: QueryStats,
    ) -> bool:
        points = sample_points(
            start_block,
            end_block,
            self.settings.sample_points,
            self.settings.mid_sample_points,
        )
        logger.debug(
            f"Sampling {len(points)} points over blocks {start_block}-{end_block}"
        )

        for point in points:
            if self._expired(deadline):
                logger.warning(
                    f"Deadline reached while sampling for {address} on "
                    f"{client.contract_id}"
                )
                return False
            lo, hi = around(point, self.settings.sample_radius, start_block, end_block)
            if await self.probe.has_logs(client, address, lo, hi, stats):
                logger.info(
                    f"Sampled activity found for {address} near block {point}"
                )
                return True

        if self._expired(deadline):
            return False

        midpoint = start_block + (end_block - start_block) // 2
        lo, hi = around(
            midpoint, self.settings.final_sweep_radius, start_block, end_block
        )
        if await self.probe.has_logs(client, address, lo, hi, stats):
            logger.info(f"Final sweep found activity for {address} near {midpoint}")
            return True
        return False

    async def _sequential(
        self,
        client: LedgerClient,
        address: str,
        start_block: int,
        end_block: int,
        deadline: float,
        stats: QueryStats,
    ) -> bool:
        group_size = self.settings.block_range * self.settings.scan_concurrency
        groups = split_range(start_block, end_block, group_size)

        for lo, hi in reversed(groups):
            if self._expired(deadline):
                logger.warning(
                    f"Deadline reached while scanning for {address} on "
                    f"{client.contract_id} at block {hi}"
                )
                return False
            if await self.probe.has_logs(client, address, lo, hi, stats):
                logger.info(f"Activity found for {address} in blocks {lo}-{hi}")
                return True
        return False
