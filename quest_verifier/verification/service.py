"""
Verification service: the engine's public entry point.

``has_interacted`` and ``has_interacted_in_time_range`` turn "did address A
touch contract C in this window?" into a bounded number of cached, retried
ledger queries:

    cache lookup -> privileged-role check -> direct-interaction check
    -> activity scan -> cache write

Caller mistakes (empty or malformed address, unknown contract or campaign,
bad dates) raise NonRetryableException subclasses. Everything else resolves
to a boolean. Ledger failures, internal errors and an elapsed deadline all
yield ``False``. Those degraded verdicts are not cached; resolved verdicts,
positive or negative, are.
"""

import asyncio
import time
from datetime import datetime
from typing import Dict, Optional, Tuple, Union

from eth_utils import is_address

from quest_verifier.config.loader import ConfigLoader
from quest_verifier.config.models import (
    CampaignDict,
    ContractProfile,
    ContractSummaryDict,
)
from quest_verifier.ledger.client import LedgerClient
from quest_verifier.ledger.pool import LedgerClientPool
from quest_verifier.shared.exceptions import (
    CampaignNotFoundException,
    InvalidInputException,
)
from quest_verifier.shared.logging import get_logger
from quest_verifier.shared.settings import EngineSettings
from quest_verifier.utils.dates import format_timestamp, to_timestamp
from quest_verifier.verification.block_dates import BlockLocator, build_block_locator
from quest_verifier.verification.cache import ResultCache, make_cache_key
from quest_verifier.verification.direct import DirectInteractionChecker
from quest_verifier.verification.probe import RangeProbe
from quest_verifier.verification.scanner import ActivityScanner

logger = get_logger(__name__)

DateInput = Union[str, datetime, int]
Window = Tuple[Optional[int], Optional[int]]


class VerificationService:
    """Wallet/contract interaction verification with caching and deadlines."""

    def __init__(
        self,
        config: ConfigLoader,
        pool: LedgerClientPool,
        cache: ResultCache,
        settings: Optional[EngineSettings] = None,
        block_locator: Optional[BlockLocator] = None,
    ):
        """
        Initialize the service.

        Args:
            config: Contract configuration provider
            pool: Per-contract ledger client pool
            cache: Verdict cache, owned by the caller
            settings: Engine tuning (defaults to ``EngineSettings.from_env()``)
            block_locator: Timestamp-to-block strategy (defaults to the one
                named by ``settings.block_strategy``)
        """
        self.config = config
        self.pool = pool
        self.cache = cache
        self.settings = settings or EngineSettings.from_env()
        self.block_locator = block_locator or build_block_locator(self.settings)

        probe = RangeProbe(self.settings)
        self.direct_checker = DirectInteractionChecker(self.settings, probe)
        self.scanner = ActivityScanner(self.settings, probe)

        self._query_count = 0
        self._cache_hits = 0
        self._stats_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Public verification API
    # ------------------------------------------------------------------

    async def has_interacted(
        self, address: str, contract_id: str, campaign_id: Optional[str] = None
    ) -> bool:
        """
        Check whether ``address`` interacted with the contract.

        With a campaign the campaign's window is checked, otherwise the
        whole history from the contract's configured start block.

        Raises:
            InvalidInputException: Empty or malformed address or contract ID
            ContractNotFoundException: Unknown contract
            CampaignNotFoundException: Unknown campaign under the contract
        """
        address, profile = self._resolve_target(address, contract_id)
        window: Window = (None, None)
        if campaign_id:
            window = self._campaign_window(profile, campaign_id)
        return await self._verify(address, profile, campaign_id or None, window)

    async def has_interacted_in_time_range(
        self,
        address: str,
        contract_id: str,
        start: Optional[DateInput] = None,
        end: Optional[DateInput] = None,
        campaign_id: Optional[str] = None,
    ) -> bool:
        """
        Check whether ``address`` interacted with the contract in a window.

        A campaign ID takes precedence over explicit ``start``/``end``. A
        date-only ``end`` covers that whole day.

        Raises:
            InvalidInputException: Bad address, missing or inverted dates
            ContractNotFoundException: Unknown contract
            CampaignNotFoundException: Unknown campaign under the contract
        """
        address, profile = self._resolve_target(address, contract_id)

        if campaign_id:
            window = self._campaign_window(profile, campaign_id)
            return await self._verify(address, profile, campaign_id, window)

        if start is None or end is None:
            raise InvalidInputException(
                "Either a campaign ID or both start and end dates are required"
            )
        try:
            start_ts = to_timestamp(start)
            end_ts = to_timestamp(end, end_of_day=True)
        except ValueError as e:
            raise InvalidInputException(f"Invalid date: {e}") from e
        if start_ts > end_ts:
            raise InvalidInputException("Start date must not be after end date")

        return await self._verify(address, profile, None, (start_ts, end_ts))

    # ------------------------------------------------------------------
    # Input resolution
    # ------------------------------------------------------------------

    def _resolve_target(
        self, address: str, contract_id: str
    ) -> Tuple[str, ContractProfile]:
        if not address or not isinstance(address, str):
            raise InvalidInputException("Address is required")
        if not contract_id:
            raise InvalidInputException("Contract ID is required")
        address = address.strip().lower()
        if not is_address(address):
            raise InvalidInputException(f"Invalid Ethereum address: {address}")
        return address, self.config.get_contract_profile(contract_id)

    @staticmethod
    def _campaign_window(profile: ContractProfile, campaign_id: str) -> Window:
        campaign = profile.get_campaign(campaign_id)
        if campaign is None:
            raise CampaignNotFoundException(profile.contract_id, campaign_id)
        return campaign.start_timestamp, campaign.end_timestamp

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _verify(
        self,
        address: str,
        profile: ContractProfile,
        campaign_id: Optional[str],
        window: Window,
    ) -> bool:
        started = time.monotonic()
        start_ts, end_ts = window
        key = make_cache_key(
            profile.contract_id, address, campaign_id, start_ts, end_ts
        )

        self._query_count += 1
        # A reload during this call invalidates the verdict we are about to compute
        generation = self.cache.generation
        cached = self.cache.get(key)
        if cached is not None:
            self._cache_hits += 1
            logger.info(f"Cache hit for {key}")
            return cached

        deadline = started + self.settings.verification_deadline
        try:
            client = self.pool.get_client(profile.contract_id)
        except Exception as e:
            logger.error(f"No ledger client for {profile.contract_id}: {e!r}")
            return False

        if await self._has_privileged_role(client, address, deadline):
            logger.info(
                f"{address} holds the {profile.privileged_role} role on "
                f"{profile.contract_id}"
            )
            self.cache.set(key, True, generation=generation)
            return True

        remaining = deadline - time.monotonic()
        try:
            verdict = await asyncio.wait_for(
                self._search(client, address, start_ts, end_ts, deadline),
                timeout=max(remaining, 0),
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Verification deadline ({self.settings.verification_deadline}s) "
                f"exceeded for {key}; returning negative verdict"
            )
            return False
        except Exception as e:
            logger.error(f"Verification failed for {key}: {e!r}")
            return False

        if not self.cache.set(key, verdict, generation=generation):
            logger.info(f"Cache cleared while verifying {key}; verdict not cached")
        logger.info(
            f"Verdict for {key}: {verdict} "
            f"({(time.monotonic() - started) * 1000:.0f}ms)"
        )
        return verdict

    async def _has_privileged_role(
        self, client: LedgerClient, address: str, deadline: float
    ) -> bool:
        role = client.profile.privileged_role
        if not role:
            return False
        timeout = min(self.settings.query_timeout, deadline - time.monotonic())
        if timeout <= 0:
            return False
        try:
            holder = await asyncio.wait_for(client.call_view(role), timeout=timeout)
        except Exception as e:
            logger.debug(f"{role}() lookup failed on {client.contract_id}: {e!r}")
            return False
        return isinstance(holder, str) and holder.lower() == address

    async def _resolve_blocks(
        self,
        client: LedgerClient,
        start_ts: Optional[int],
        end_ts: Optional[int],
    ) -> Tuple[int, int]:
        floor = client.profile.start_block
        if start_ts is None or end_ts is None:
            head = await client.get_head_block_number()
            return floor, head

        start_block, end_block = await self.block_locator.block_window(
            client, start_ts, end_ts
        )
        logger.debug(
            f"Window {format_timestamp(start_ts)} - {format_timestamp(end_ts)} "
            f"-> blocks {start_block}-{end_block}"
        )
        return max(start_block, floor), end_block

    async def _search(
        self,
        client: LedgerClient,
        address: str,
        start_ts: Optional[int],
        end_ts: Optional[int],
        deadline: float,
    ) -> bool:
        start_block, end_block = await self._resolve_blocks(client, start_ts, end_ts)
        if end_block < start_block:
            return False

        if await self.direct_checker.has_direct_interaction(
            client, address, start_block, end_block, deadline
        ):
            return True

        return await self.scanner.has_activity(
            client, address, start_block, end_block, deadline
        )

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def clear_cache(self) -> None:
        self.cache.clear()

    def reload_configuration(self) -> None:
        """
        Reload contract configuration, drop ledger clients and clear the cache.

        Raises:
            ConfigurationException: If the new configuration is invalid; the
                previous configuration, clients and cache are left untouched.
        """
        self.config.reload()
        self.pool.reset()
        self.cache.clear()
        logger.info("Configuration reloaded, ledger clients reset and cache cleared")

    def get_available_contracts(self) -> Dict[str, ContractSummaryDict]:
        return {
            contract_id: self.config.get_contract_profile(contract_id).to_summary()
            for contract_id in self.config.list_contract_ids()
        }

    def get_campaign(self, contract_id: str, campaign_id: str) -> CampaignDict:
        """
        Raises:
            ContractNotFoundException: Unknown contract
            CampaignNotFoundException: Unknown campaign under the contract
        """
        campaign = self.config.get_campaign(contract_id, campaign_id)
        if campaign is None:
            raise CampaignNotFoundException(contract_id, campaign_id)
        return campaign.to_dict()

    # ------------------------------------------------------------------
    # Statistics and background tasks
    # ------------------------------------------------------------------

    def get_stats(self) -> Dict[str, Union[int, float]]:
        hit_rate = (
            self._cache_hits / self._query_count * 100 if self._query_count else 0.0
        )
        return {
            "total_queries": self._query_count,
            "cache_hits": self._cache_hits,
            "cache_hit_rate": round(hit_rate, 2),
            "cache_size": len(self.cache),
        }

    def log_stats(self) -> None:
        """Log performance counters and reset them."""
        stats = self.get_stats()
        logger.info(
            f"Performance stats: total_queries={stats['total_queries']} "
            f"cache_hit_rate={stats['cache_hit_rate']:.2f}% "
            f"cache_size={stats['cache_size']}"
        )
        self._query_count = 0
        self._cache_hits = 0

    async def _periodic_stats(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.log_stats()

    def start_background_tasks(self) -> None:
        """Start the cache sweep and stats logging; needs a running loop."""
        self.cache.start_cleanup_task(self.settings.cache_sweep_interval)
        if self._stats_task is None or self._stats_task.done():
            self._stats_task = asyncio.create_task(
                self._periodic_stats(self.settings.stats_interval)
            )

    async def stop_background_tasks(self) -> None:
        await self.cache.stop_cleanup_task()
        if self._stats_task is not None:
            self._stats_task.cancel()
            try:
                await self._stats_task
            except asyncio.CancelledError:
                pass
            self._stats_task = None
