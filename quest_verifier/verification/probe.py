"""Range probe: does a block range hold interaction logs for an address?"""

import asyncio
from typing import List, Optional, Tuple

from quest_verifier.ledger.client import LedgerClient
from quest_verifier.ledger.query import QueryStats, query_with_retry
from quest_verifier.shared.retry import RetryConfig
from quest_verifier.shared.settings import EngineSettings


def split_range(from_block: int, to_block: int, size: int) -> List[Tuple[int, int]]:
    """Split an inclusive block range into chunks of at most ``size`` blocks."""
    out: List[Tuple[int, int]] = []
    cur = from_block
    while cur <= to_block:
        end = min(cur + size - 1, to_block)
        out.append((cur, end))
        cur = end + 1
    return out


class RangeProbe:
    """
    Checks an inclusive block range for interaction events.

    The range is split into provider-sized chunks; for every chunk the
    "sent" and "received" filters are queried concurrently. Any non-empty
    result is a hit.
    """

    def __init__(self, settings: EngineSettings):
        self.settings = settings
        self.retry_config = RetryConfig.for_ledger(
            settings.max_retries, settings.retry_base_delay, settings.query_timeout
        )

    async def has_logs(
        self,
        client: LedgerClient,
        address: str,
        from_block: int,
        to_block: int,
        stats: Optional[QueryStats] = None,
    ) -> bool:
        if to_block < from_block:
            return False

        sent = client.sent_filter(address)
        received = client.received_filter(address)

        queries = []
        for start, end in split_range(from_block, to_block, self.settings.block_range):
            for topics in (sent, received):
                queries.append(
                    query_with_retry(
                        client, start, end, topics, self.retry_config, stats
                    )
                )

        results = await asyncio.gather(*queries)
        return any(len(logs) > 0 for logs in results)
