"""
Lazily built, per-contract ledger clients.

The pool is the only long-lived owner of LedgerClient instances. Callers
ask for a client per request and must not keep it across requests, so that
a configuration reload (``reset()``) takes effect for every new request
while in-flight ones finish on the handles they already hold.
"""

import threading
from typing import Callable, Dict, List

from quest_verifier.config.loader import ConfigLoader
from quest_verifier.config.models import ContractProfile
from quest_verifier.ledger.client import LedgerClient
from quest_verifier.shared.logging import get_logger

logger = get_logger(__name__)


class LedgerClientPool:
    """One LedgerClient per contract identifier, created on first use."""

    def __init__(
        self,
        config: ConfigLoader,
        client_factory: Callable[[ContractProfile], LedgerClient] = LedgerClient,
    ):
        self.config = config
        self._client_factory = client_factory
        self._clients: Dict[str, LedgerClient] = {}
        self._lock = threading.Lock()

    def get_client(self, contract_id: str) -> LedgerClient:
        """
        Get or create the client for a contract.

        Raises:
            ContractNotFoundException: If the contract is not configured.
        """
        client = self._clients.get(contract_id)
        if client is not None:
            return client

        with self._lock:
            # Another caller may have built it while we waited
            client = self._clients.get(contract_id)
            if client is None:
                profile = self.config.get_contract_profile(contract_id)
                client = self._client_factory(profile)
                self._clients[contract_id] = client
                logger.info(
                    f"Initialized ledger client for {contract_id} "
                    f"({len(profile.endpoints)} endpoint(s), chain {profile.chain_id})"
                )
        return client

    def reset(self) -> None:
        """Drop every cached client so the next request rebuilds from config."""
        with self._lock:
            count = len(self._clients)
            self._clients = {}
        logger.info(f"Ledger client pool reset ({count} client(s) dropped)")

    def active_contracts(self) -> List[str]:
        return list(self._clients.keys())
