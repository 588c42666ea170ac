"""
Pytest configuration and shared fixtures.

This module provides an in-memory ledger and a small contracts file so the
verification engine can be exercised without a node.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional

import pytest
from eth_utils import to_checksum_address

from quest_verifier.config.loader import ConfigLoader
from quest_verifier.config.models import ContractProfile
from quest_verifier.ledger.client import pad_address_topic
from quest_verifier.ledger.pool import LedgerClientPool
from quest_verifier.shared.settings import EngineSettings
from quest_verifier.verification.cache import ResultCache
from quest_verifier.verification.service import VerificationService

# 2024-01-01T00:00:00Z, timestamp of block 1 on the fake chain
GENESIS_TIMESTAMP = 1704067200
BLOCK_TIME = 12
HEAD_BLOCK = 300_000

TRANSFER_TOPIC = "0x" + "dd" * 32

ALPHA_ADDRESS = "0x940181a94a35a4569e4529a3cdfb74e38fd98631"
BETA_ADDRESS = "0x7e1444ba99dcdffe8fbdb42c02fb0da4aaace4d5"
USER = "0xabcdef0123456789abcdef0123456789abcdef01"
OTHER_USER = "0x1111111111111111111111111111111111111111"
MINTER = "0x2222222222222222222222222222222222222222"
# USER in mixed case that fails EIP-55 checksum validation
BAD_CHECKSUM_USER = "0x" + to_checksum_address(USER)[2:].swapcase()


def block_timestamp(number: int) -> int:
    return GENESIS_TIMESTAMP + (number - 1) * BLOCK_TIME


class FakeLedgerClient:
    """
    In-memory stand-in for LedgerClient.

    Blocks are evenly spaced ``BLOCK_TIME`` seconds apart from
    ``GENESIS_TIMESTAMP``. Transfers are (block, sender, recipient) tuples; a
    transfer sent by an address bumps its transaction count from that block
    on. Every ledger read is recorded in ``calls``.
    """

    def __init__(
        self,
        profile: ContractProfile,
        head: int = HEAD_BLOCK,
        minter: Optional[str] = MINTER,
    ):
        self.profile = profile
        self.contract_id = profile.contract_id
        self.address = profile.address
        self.head = head
        self.minter = minter
        self.transfers: List[Dict[str, Any]] = []
        self.calls: List[str] = []
        self.failing_logs = False

    def add_transfer(self, block: int, sender: str, recipient: str) -> None:
        self.transfers.append(
            {"blockNumber": block, "from": sender.lower(), "to": recipient.lower()}
        )

    # Ledger reads

    async def get_head_block_number(self) -> int:
        self.calls.append("head")
        return self.head

    async def get_block(self, block_number: int) -> Dict[str, int]:
        self.calls.append("block")
        if block_number < 1 or block_number > self.head:
            raise ValueError(f"block {block_number} not found")
        return {"number": block_number, "timestamp": block_timestamp(block_number)}

    async def get_transaction_count(self, address: str, block_number: int) -> int:
        self.calls.append("nonce")
        return sum(
            1
            for t in self.transfers
            if t["from"] == address.lower() and t["blockNumber"] <= block_number
        )

    async def get_logs(self, from_block: int, to_block: int, topics) -> List[Dict]:
        self.calls.append("logs")
        if self.failing_logs:
            raise ConnectionError("node unavailable")
        matches = []
        for t in self.transfers:
            if not from_block <= t["blockNumber"] <= to_block:
                continue
            log_topics = [
                TRANSFER_TOPIC,
                pad_address_topic(t["from"]),
                pad_address_topic(t["to"]),
            ]
            if all(
                wanted is None or wanted == actual
                for wanted, actual in zip(topics, log_topics)
            ):
                matches.append(t)
        return matches

    async def call_view(self, function_name: str) -> Any:
        self.calls.append(function_name)
        if function_name != "minter" or self.minter is None:
            raise ValueError(f"execution reverted: {function_name}")
        return self.minter

    # Filters

    def sent_filter(self, address: str) -> List[Optional[str]]:
        return [TRANSFER_TOPIC, pad_address_topic(address)]

    def received_filter(self, address: str) -> List[Optional[str]]:
        return [TRANSFER_TOPIC, None, pad_address_topic(address)]


class HangingLedgerClient(FakeLedgerClient):
    """A ledger whose every call blocks forever."""

    async def _hang(self):
        await asyncio.Event().wait()

    async def get_head_block_number(self) -> int:
        await self._hang()

    async def get_block(self, block_number: int) -> Dict[str, int]:
        await self._hang()

    async def get_transaction_count(self, address: str, block_number: int) -> int:
        await self._hang()

    async def get_logs(self, from_block: int, to_block: int, topics) -> List[Dict]:
        await self._hang()

    async def call_view(self, function_name: str) -> Any:
        await self._hang()


CONTRACTS = {
    "contracts": {
        "alpha": {
            "name": "Alpha Token",
            "address": ALPHA_ADDRESS,
            "rpcUrlRef": "ALPHA_RPC_URL",
            "fallbackRpcUrlRefs": ["ALPHA_FALLBACK_RPC_URL"],
            "chainId": 1,
            "startBlock": 1,
            "averageBlockTime": BLOCK_TIME,
            "campaigns": {
                "january_week1": {
                    "name": "First week of January",
                    "startDate": "2024-01-01",
                    "endDate": "2024-01-07",
                    "description": "Launch week",
                },
                "february": {
                    "name": "Early February",
                    "startDate": "2024-02-01",
                    "endDate": "2024-02-05",
                },
            },
        },
        "beta": {
            "name": "Beta Token",
            "address": BETA_ADDRESS,
            "rpcUrlRef": "BETA_RPC_URL",
            "chainId": 1,
            "averageBlockTime": BLOCK_TIME,
            "privilegedRole": None,
        },
    }
}

ENVIRON = {
    "ALPHA_RPC_URL": "http://alpha.invalid",
    "ALPHA_FALLBACK_RPC_URL": "http://alpha-fallback.invalid",
    "BETA_RPC_URL": "http://beta.invalid",
}


@pytest.fixture
def contracts_file(tmp_path):
    """Write the sample contracts document and return its path."""
    path = tmp_path / "contracts.json"
    path.write_text(json.dumps(CONTRACTS))
    return path


@pytest.fixture
def config_loader(contracts_file) -> ConfigLoader:
    return ConfigLoader(str(contracts_file), environ=ENVIRON)


@pytest.fixture
def engine_settings() -> EngineSettings:
    """Fast settings for tests: short deadlines, tiny retry delays."""
    return EngineSettings(
        verification_deadline=5.0,
        query_timeout=1.0,
        max_retries=1,
        retry_base_delay=0.001,
        recent_blocks=100,
    )


@pytest.fixture
def ledgers(config_loader) -> Dict[str, FakeLedgerClient]:
    return {
        contract_id: FakeLedgerClient(config_loader.get_contract_profile(contract_id))
        for contract_id in config_loader.list_contract_ids()
    }


@pytest.fixture
def result_cache() -> ResultCache:
    return ResultCache(default_ttl=60)


@pytest.fixture
def service(config_loader, ledgers, result_cache, engine_settings) -> VerificationService:
    pool = LedgerClientPool(
        config_loader, client_factory=lambda profile: ledgers[profile.contract_id]
    )
    return VerificationService(
        config=config_loader,
        pool=pool,
        cache=result_cache,
        settings=engine_settings,
    )
