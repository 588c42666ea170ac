"""
Ledger client module for reading contract history from an EVM node.

This module provides a LedgerClient class bound to one contract profile. It
owns one Web3 connection per configured endpoint (primary first, then
fallbacks) plus the contract interface built from the packaged ABI, and
exposes the handful of read calls the verification engine needs as
coroutines. Blocking web3 calls run in the default executor so that
independent queries can be awaited concurrently.
"""

import asyncio
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional, TypeVar

from eth_utils import event_abi_to_log_topic, to_checksum_address
from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware

from quest_verifier.config.models import ContractProfile
from quest_verifier.shared.constants import LedgerConstants
from quest_verifier.shared.exceptions import LedgerQueryException
from quest_verifier.shared.logging import get_logger
from quest_verifier.shared.services.resource_manager import resource_manager

T = TypeVar("T")

Topics = List[Optional[str]]

logger = get_logger(__name__)


def pad_address_topic(address: str) -> str:
    """Left-pad an address to a 32-byte log topic"""
    return "0x" + address.lower()[2:].zfill(64)


class LedgerClient:
    """
    Read-only access to one contract on one chain.

    Each call tries the last endpoint that answered successfully, then the
    remaining endpoints in configured order. When every endpoint fails the
    last error is raised as LedgerQueryException.
    """

    def __init__(
        self,
        profile: ContractProfile,
        abi_name: str = LedgerConstants.DEFAULT_ABI,
    ):
        """
        Initialize the LedgerClient.

        Args:
            profile (ContractProfile): The contract to bind to.
            abi_name (str): Packaged ABI used for the contract interface.
        """
        if not profile.endpoints:
            raise LedgerQueryException(
                f"No RPC endpoint configured for contract {profile.contract_id}"
            )
        self.profile = profile
        self.contract_id = profile.contract_id
        self.address = to_checksum_address(profile.address.lower())
        self._abi_name = abi_name
        self._abi = resource_manager.load_abi(abi_name)
        self._connections = [
            self._initialize_web3(url) for url in profile.endpoints
        ]
        self._contracts = [
            w3.eth.contract(address=self.address, abi=self._abi)
            for w3 in self._connections
        ]
        self._preferred = 0
        self._lock = threading.Lock()

    def _initialize_web3(self, rpc_url: str) -> Web3:
        """Initialize Web3 instance with middleware if needed"""
        w3 = Web3(
            Web3.HTTPProvider(
                rpc_url,
                request_kwargs={
                    "timeout": LedgerConstants.PROVIDER_REQUEST_TIMEOUT
                },
            )
        )

        # Add POA middleware for non-mainnet chains
        if self.profile.chain_id != 1:
            w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

        return w3

    # ------------------------------------------------------------------
    # Endpoint selection
    # ------------------------------------------------------------------

    def _endpoint_order(self) -> List[int]:
        with self._lock:
            preferred = self._preferred
        rest = [i for i in range(len(self._connections)) if i != preferred]
        return [preferred] + rest

    def _invoke(self, call: Callable[[int], T], label: str) -> T:
        last_error: Optional[Exception] = None
        for index in self._endpoint_order():
            try:
                result = call(index)
            except Exception as e:
                last_error = e
                logger.debug(
                    f"{label} failed on endpoint {index} for {self.contract_id}: {e!r}"
                )
                continue
            with self._lock:
                self._preferred = index
            return result

        raise LedgerQueryException(
            f"{label} failed on all {len(self._connections)} endpoints "
            f"for {self.contract_id}: {last_error!r}"
        ) from last_error

    async def _run(self, call: Callable[[int], T], label: str) -> T:
        # Use executor to avoid blocking the event loop
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._invoke, call, label)

    # ------------------------------------------------------------------
    # Ledger reads
    # ------------------------------------------------------------------

    async def get_head_block_number(self) -> int:
        return await self._run(
            lambda i: int(self._connections[i].eth.block_number),
            "eth_blockNumber",
        )

    async def get_block(self, block_number: int) -> Dict[str, int]:
        """Get number and timestamp for a specific block"""

        def _get(i: int) -> Dict[str, int]:
            block = self._connections[i].eth.get_block(block_number)
            return {
                "number": int(block["number"]),
                "timestamp": int(block["timestamp"]),
            }

        return await self._run(_get, f"eth_getBlockByNumber({block_number})")

    async def get_transaction_count(self, address: str, block_number: int) -> int:
        checksum = to_checksum_address(address)
        return await self._run(
            lambda i: int(
                self._connections[i].eth.get_transaction_count(
                    checksum, block_identifier=block_number
                )
            ),
            f"eth_getTransactionCount({block_number})",
        )

    async def get_logs(
        self, from_block: int, to_block: int, topics: Topics
    ) -> List[Any]:
        """Get the contract's logs in [from_block, to_block] matching topics"""
        params = {
            "address": self.address,
            "fromBlock": from_block,
            "toBlock": to_block,
            "topics": topics,
        }
        return await self._run(
            lambda i: list(self._connections[i].eth.get_logs(params)),
            f"eth_getLogs({from_block}-{to_block})",
        )

    async def call_view(self, function_name: str) -> Any:
        """Call a zero-argument view function on the contract"""
        return await self._run(
            lambda i: getattr(self._contracts[i].functions, function_name)().call(),
            f"{function_name}()",
        )

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def filter_for(
        self, event_name: str, indexed_args: Mapping[str, Optional[str]]
    ) -> Topics:
        """
        Build the topic filter for an event of the bound ABI.

        Args:
            event_name: ABI event name (e.g. "Transfer")
            indexed_args: Values for indexed address arguments by name;
                missing or None entries act as wildcards.

        Returns:
            Topic list with the event signature hash first.
        """
        event_abi = resource_manager.find_event(self._abi_name, event_name)

        indexed_inputs = [i for i in event_abi["inputs"] if i.get("indexed")]
        unknown = set(indexed_args) - {i["name"] for i in indexed_inputs}
        if unknown:
            raise ValueError(
                f"Unknown indexed arguments for {event_name}: {sorted(unknown)}"
            )

        topics: Topics = ["0x" + event_abi_to_log_topic(event_abi).hex()]
        for item in indexed_inputs:
            value = indexed_args.get(item["name"])
            if value is None:
                topics.append(None)
            elif item["type"] == "address":
                topics.append(pad_address_topic(value))
            else:
                raise ValueError(
                    f"Unsupported indexed argument type: {item['type']}"
                )

        while topics and topics[-1] is None:
            topics.pop()
        return topics

    def sent_filter(self, address: str) -> Topics:
        """Interaction events emitted with ``address`` as sender"""
        return self.filter_for(
            LedgerConstants.INTERACTION_EVENT,
            {LedgerConstants.SENDER_ARG: address},
        )

    def received_filter(self, address: str) -> Topics:
        """Interaction events emitted with ``address`` as recipient"""
        return self.filter_for(
            LedgerConstants.INTERACTION_EVENT,
            {LedgerConstants.RECIPIENT_ARG: address},
        )
