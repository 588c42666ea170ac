"""
Bounded, retried log queries.

Every event-log lookup made by the verification engine goes through
``query_with_retry``: each attempt is raced against a timeout and failed
attempts are retried with a linearly increasing delay. When all attempts
fail the query yields an empty list, which callers must read as
"no evidence found" and never as "definitely no interaction".
"""

from typing import Any, List, Optional

from quest_verifier.ledger.client import LedgerClient, Topics
from quest_verifier.shared.logging import get_logger
from quest_verifier.shared.retry import (
    LEDGER_RETRY_CONFIG,
    RetryConfig,
    retry_async_operation,
)

logger = get_logger(__name__)


class QueryStats:
    """Counts exhausted queries so scanners can report coverage gaps."""

    def __init__(self):
        self.queries = 0
        self.failures = 0

    @property
    def complete(self) -> bool:
        return self.failures == 0


async def query_with_retry(
    client: LedgerClient,
    from_block: int,
    to_block: int,
    topics: Topics,
    config: Optional[RetryConfig] = None,
    stats: Optional[QueryStats] = None,
) -> List[Any]:
    """
    Fetch logs for [from_block, to_block] with timeout and retry.

    Returns:
        The matching logs, or an empty list once retries are exhausted.
    """
    config = config or LEDGER_RETRY_CONFIG
    if stats is not None:
        stats.queries += 1
    try:
        return await retry_async_operation(
            client.get_logs,
            from_block,
            to_block,
            topics,
            config=config,
            operation_name=f"get_logs[{client.contract_id}]({from_block}-{to_block})",
        )
    except Exception as e:
        if stats is not None:
            stats.failures += 1
        logger.error(
            f"Log query {from_block}-{to_block} on {client.contract_id} failed "
            f"after {config.max_attempts} attempts: {e!r}"
        )
        return []
