"""
Direct-interaction check.

A cheap, high-confidence first pass: if the address's transaction count
changed across the window it was active in it. The checker then tries to
pin the activity down with log queries over the most recent, middle and
earliest thirds of the window, in that order. Each third is walked
newest-first in steps of ``max_probe_span`` blocks until a log turns up or
the verification deadline passes. When a count delta is conclusive on its
own only the newest step of each third is probed, for the log line.

Whether a count change without a matching log still counts as an
interaction is a policy switch (``count_delta_is_conclusive``). Any ledger
failure here degrades to "no direct interaction found".
"""

import asyncio
import time
from typing import Iterator, List, Optional, Tuple

from quest_verifier.ledger.client import LedgerClient
from quest_verifier.shared.logging import get_logger
from quest_verifier.shared.settings import EngineSettings
from quest_verifier.verification.probe import RangeProbe

logger = get_logger(__name__)


def window_thirds(start_block: int, end_block: int) -> List[Tuple[int, int]]:
    """Most recent, middle and earliest thirds of an inclusive block range."""
    span = end_block - start_block + 1
    if span < 3:
        return [(start_block, end_block)]
    third = span // 3
    earliest = (start_block, start_block + third - 1)
    middle = (start_block + third, start_block + 2 * third - 1)
    recent = (start_block + 2 * third, end_block)
    return [recent, middle, earliest]


class DirectInteractionChecker:
    """Transaction-count delta check with targeted log confirmation."""

    def __init__(self, settings: EngineSettings, probe: RangeProbe):
        self.settings = settings
        self.probe = probe

    def _steps(
        self, from_block: int, to_block: int, exhaustive: bool = True
    ) -> Iterator[Tuple[int, int]]:
        span = max(self.settings.max_probe_span, 1)
        hi = to_block
        while hi >= from_block:
            lo = max(from_block, hi - span + 1)
            yield lo, hi
            if not exhaustive:
                return
            hi = lo - 1

    async def _locate(
        self,
        client: LedgerClient,
        address: str,
        start_block: int,
        end_block: int,
        deadline: Optional[float],
    ) -> bool:
        exhaustive = not self.settings.count_delta_is_conclusive
        for from_block, to_block in window_thirds(start_block, end_block):
            for lo, hi in self._steps(from_block, to_block, exhaustive):
                if deadline is not None and time.monotonic() >= deadline:
                    logger.warning(
                        f"Deadline reached localizing activity for {address} on "
                        f"{client.contract_id}; stopped before blocks {lo}-{hi}"
                    )
                    return False
                if await self.probe.has_logs(client, address, lo, hi):
                    logger.info(
                        f"Direct interaction confirmed for {address} on "
                        f"{client.contract_id} in blocks {lo}-{hi}"
                    )
                    return True
        return False

    async def _transaction_counts(
        self, client: LedgerClient, address: str, start_block: int, end_block: int
    ) -> Tuple[int, int]:
        before_block = max(start_block - 1, 0)
        before, after = await asyncio.gather(
            asyncio.wait_for(
                client.get_transaction_count(address, before_block),
                timeout=self.settings.query_timeout,
            ),
            asyncio.wait_for(
                client.get_transaction_count(address, end_block),
                timeout=self.settings.query_timeout,
            ),
        )
        return before, after

    async def has_direct_interaction(
        self,
        client: LedgerClient,
        address: str,
        start_block: int,
        end_block: int,
        deadline: Optional[float] = None,
    ) -> bool:
        """
        Whether the address was active in ``[start_block, end_block]``.

        ``deadline`` is a ``time.monotonic()`` instant; log localization stops
        once it passes and the count-delta policy decides.
        """
        if end_block < start_block:
            return False

        try:
            before, after = await self._transaction_counts(
                client, address, start_block, end_block
            )
        except Exception as e:
            logger.warning(
                f"Transaction count lookup failed for {address} on "
                f"{client.contract_id}: {e!r}"
            )
            return False

        if before == after:
            return False

        try:
            if await self._locate(client, address, start_block, end_block, deadline):
                return True
        except Exception as e:
            logger.warning(
                f"Log confirmation failed for {address} on {client.contract_id}: {e!r}"
            )

        if self.settings.count_delta_is_conclusive:
            logger.info(
                f"Transaction count moved {before} -> {after} for {address} on "
                f"{client.contract_id} without a matching log; accepting count delta"
            )
            return True
        return False
