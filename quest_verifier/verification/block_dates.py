"""
Block-date approximation.

Maps wall-clock timestamps to ledger block numbers so that dated campaign
windows can be turned into block ranges. Two interchangeable strategies are
provided behind the BlockLocator interface:

- ArithmeticBlockEstimator: one head read, then ``blocks_back =
  (head_ts - target) / average_block_time``. Cheap, approximate.
- BinarySearchBlockLocator: bounded binary search over [1, head] comparing
  sampled block timestamps, returning the closest block seen.

Both are monotonic on well-behaved chains: a later timestamp never maps to
an earlier block. Chains whose own timestamps go backwards can still yield
non-monotonic results from the binary search; that is left visible rather
than corrected.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

from quest_verifier.ledger.client import LedgerClient
from quest_verifier.shared.constants import LedgerConstants
from quest_verifier.shared.exceptions import LedgerQueryException
from quest_verifier.shared.logging import get_logger
from quest_verifier.shared.settings import EngineSettings

logger = get_logger(__name__)


class BlockLocator(ABC):
    """Strategy interface: timestamp -> approximate block number."""

    @abstractmethod
    async def block_for_timestamp(
        self, client: LedgerClient, timestamp: int, head: Optional[int] = None
    ) -> int:
        """Approximate block number for ``timestamp`` on the client's chain."""

    async def block_window(
        self, client: LedgerClient, start_timestamp: int, end_timestamp: int
    ) -> Tuple[int, int]:
        """Block range for an inclusive timestamp window, sharing one head read."""
        head = await client.get_head_block_number()
        start_block = await self.block_for_timestamp(client, start_timestamp, head)
        end_block = await self.block_for_timestamp(client, end_timestamp, head)
        return start_block, end_block


class ArithmeticBlockEstimator(BlockLocator):
    """Estimate blocks from the head block and an average block interval."""

    def __init__(self, default_block_time: float = 12.0):
        self.default_block_time = default_block_time

    def block_time_for(self, client: LedgerClient) -> float:
        profile = client.profile
        if profile.average_block_time:
            return float(profile.average_block_time)
        return LedgerConstants.CHAIN_BLOCK_TIMES.get(
            profile.chain_id, self.default_block_time
        )

    @staticmethod
    def estimate(
        target_timestamp: int, head: int, head_timestamp: int, block_time: float
    ) -> int:
        if target_timestamp >= head_timestamp:
            return head
        blocks_back = int((head_timestamp - target_timestamp) // block_time)
        return max(1, head - blocks_back)

    async def block_for_timestamp(
        self, client: LedgerClient, timestamp: int, head: Optional[int] = None
    ) -> int:
        if head is None:
            head = await client.get_head_block_number()
        head_block = await client.get_block(head)
        return self.estimate(
            timestamp, head, head_block["timestamp"], self.block_time_for(client)
        )

    async def block_window(
        self, client: LedgerClient, start_timestamp: int, end_timestamp: int
    ) -> Tuple[int, int]:
        head = await client.get_head_block_number()
        head_timestamp = (await client.get_block(head))["timestamp"]
        block_time = self.block_time_for(client)
        return (
            self.estimate(start_timestamp, head, head_timestamp, block_time),
            self.estimate(end_timestamp, head, head_timestamp, block_time),
        )


class BinarySearchBlockLocator(BlockLocator):
    """
    Binary search for the block whose timestamp is closest to the target.

    Blocks that fail to resolve pull the upper bound inward instead of
    aborting the search. Ties on timestamp distance go to the lower block.
    """

    def __init__(self, max_iterations: int = 40):
        self.max_iterations = max_iterations

    async def _timestamp(
        self, client: LedgerClient, number: int, seen: Dict[int, int]
    ) -> Optional[int]:
        if number in seen:
            return seen[number]
        try:
            block = await client.get_block(number)
        except Exception as e:
            logger.debug(f"Block {number} unavailable during search: {e!r}")
            return None
        seen[number] = block["timestamp"]
        return seen[number]

    async def _search(
        self,
        client: LedgerClient,
        timestamp: int,
        head: int,
        seen: Dict[int, int],
    ) -> int:
        low, high = 1, head
        best_block: Optional[int] = None
        best_delta: Optional[int] = None

        for _ in range(self.max_iterations):
            if low > high:
                break
            mid = (low + high) // 2
            mid_ts = await self._timestamp(client, mid, seen)
            if mid_ts is None:
                high = mid - 1
                continue

            delta = abs(mid_ts - timestamp)
            if (
                best_delta is None
                or delta < best_delta
                or (delta == best_delta and mid < best_block)
            ):
                best_block, best_delta = mid, delta

            if mid_ts == timestamp:
                return mid
            if mid_ts < timestamp:
                low = mid + 1
            else:
                high = mid - 1

        if best_block is None:
            raise LedgerQueryException(
                f"Could not resolve any block near timestamp {timestamp} "
                f"on {client.contract_id}"
            )
        return best_block

    async def block_for_timestamp(
        self, client: LedgerClient, timestamp: int, head: Optional[int] = None
    ) -> int:
        if head is None:
            head = await client.get_head_block_number()
        return await self._search(client, timestamp, head, {})

    async def block_window(
        self, client: LedgerClient, start_timestamp: int, end_timestamp: int
    ) -> Tuple[int, int]:
        head = await client.get_head_block_number()
        seen: Dict[int, int] = {}
        start_block = await self._search(client, start_timestamp, head, seen)
        end_block = await self._search(client, end_timestamp, head, seen)
        return start_block, end_block


def build_block_locator(settings: EngineSettings) -> BlockLocator:
    """Pick the locator named by ``settings.block_strategy``."""
    if settings.block_strategy == "binary_search":
        return BinarySearchBlockLocator(settings.binary_search_max_iterations)
    return ArithmeticBlockEstimator(settings.default_block_time)
