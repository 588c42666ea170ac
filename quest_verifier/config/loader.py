"""
Contract configuration loader.

Loads contract profiles and their campaigns from a JSON file. RPC URLs are
never stored in the file itself: each contract names the environment
variable holding its primary endpoint (``rpcUrlRef``) and, optionally, its
fallbacks (``fallbackRpcUrlRefs``).

The loaded state is an immutable snapshot. ``reload()`` builds a new one and
swaps it in under a lock, so readers always see either the old or the new
configuration, never a mix.
"""

import json
import os
import re
import threading
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence

from eth_utils import is_address
from dotenv import load_dotenv

from quest_verifier.config.models import Campaign, ContractProfile
from quest_verifier.shared.constants import LedgerConstants
from quest_verifier.shared.exceptions import (
    CampaignNotFoundException,
    ConfigurationException,
    ContractNotFoundException,
    InvalidInputException,
)
from quest_verifier.shared.logging import get_logger
from quest_verifier.utils.dates import to_timestamp

load_dotenv()

DEFAULT_CONFIG_PATH = "config/contracts.json"

_ID_PATTERN = re.compile(r"^[a-z0-9_]+$")

logger = get_logger(__name__)


def _candidate_paths(config_path: Optional[str]) -> List[Path]:
    configured = config_path or os.getenv("QV_CONFIG_PATH") or DEFAULT_CONFIG_PATH
    cwd = Path.cwd()
    return [
        Path(configured),
        cwd / configured,
        cwd / DEFAULT_CONFIG_PATH,
        cwd / "contracts.json",
        Path(__file__).resolve().parent / "contracts.json",
    ]


def find_config_file(paths: Sequence[Path]) -> Path:
    """Return the first existing path from ``paths``."""
    for path in paths:
        if path.is_file():
            logger.info(f"Found configuration file at: {path}")
            return path

    tried = ", ".join(str(p) for p in paths)
    raise ConfigurationException(
        f"Configuration file not found. Tried paths: {tried}"
    )


def validate_config(raw: Any) -> List[str]:
    """
    Check a parsed contracts document against the expected schema.

    Returns:
        A list of human-readable problems (empty when valid).
    """
    errors: List[str] = []
    if not isinstance(raw, dict) or not isinstance(raw.get("contracts"), dict):
        return ['"contracts" must be an object']

    for contract_id, contract in raw["contracts"].items():
        where = f"contracts.{contract_id}"
        if not _ID_PATTERN.match(contract_id):
            errors.append(f"{where}: id must match {_ID_PATTERN.pattern}")
        if not isinstance(contract, dict):
            errors.append(f"{where}: must be an object")
            continue

        for key in ("name", "address", "rpcUrlRef"):
            if not isinstance(contract.get(key), str) or not contract[key]:
                errors.append(f"{where}.{key}: required string")
        if isinstance(contract.get("address"), str) and contract["address"]:
            if not is_address(contract["address"].lower()):
                errors.append(f"{where}.address: not a valid address")

        chain_id = contract.get("chainId")
        if not isinstance(chain_id, int) or isinstance(chain_id, bool):
            errors.append(f"{where}.chainId: required integer")

        fallbacks = contract.get("fallbackRpcUrlRefs", [])
        if not isinstance(fallbacks, list) or not all(
            isinstance(ref, str) for ref in fallbacks
        ):
            errors.append(f"{where}.fallbackRpcUrlRefs: must be a list of strings")

        start_block = contract.get("startBlock", 1)
        if not isinstance(start_block, int) or start_block < 0:
            errors.append(f"{where}.startBlock: must be a non-negative integer")

        block_time = contract.get("averageBlockTime")
        if block_time is not None and (
            not isinstance(block_time, (int, float)) or block_time <= 0
        ):
            errors.append(f"{where}.averageBlockTime: must be a positive number")

        role = contract.get("privilegedRole", LedgerConstants.DEFAULT_PRIVILEGED_ROLE)
        if role is not None and not isinstance(role, str):
            errors.append(f"{where}.privilegedRole: must be a string or null")

        campaigns = contract.get("campaigns", {})
        if not isinstance(campaigns, dict):
            errors.append(f"{where}.campaigns: must be an object")
            continue
        for campaign_id, campaign in campaigns.items():
            errors.extend(
                _validate_campaign(f"{where}.campaigns.{campaign_id}", campaign_id, campaign)
            )

    return errors


def _validate_campaign(where: str, campaign_id: str, campaign: Any) -> List[str]:
    errors: List[str] = []
    if not _ID_PATTERN.match(campaign_id):
        errors.append(f"{where}: id must match {_ID_PATTERN.pattern}")
    if not isinstance(campaign, dict):
        return errors + [f"{where}: must be an object"]

    for key in ("name", "startDate", "endDate"):
        if not isinstance(campaign.get(key), str) or not campaign[key]:
            errors.append(f"{where}.{key}: required string")
    description = campaign.get("description", "")
    if not isinstance(description, str):
        errors.append(f"{where}.description: must be a string")

    if errors:
        return errors

    try:
        start = to_timestamp(campaign["startDate"])
        end = to_timestamp(campaign["endDate"], end_of_day=True)
    except ValueError as e:
        return [f"{where}: invalid date ({e})"]
    if start > end:
        errors.append(f"{where}: startDate must be before endDate")
    return errors


class ConfigLoader:
    """
    Loads and serves contract profiles.

    Read-only from the engine's perspective; ``reload()`` is the only way
    the served state changes.
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self._lock = threading.RLock()
        self._environ = environ
        self.config_path = find_config_file(_candidate_paths(config_path))
        self._contracts: Mapping[str, ContractProfile] = MappingProxyType({})
        self.reload()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _load_raw_config(self) -> Dict[str, Any]:
        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                parsed = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationException(f"Failed to load configuration: {e}")

        errors = validate_config(parsed)
        if errors:
            message = "; ".join(errors)
            logger.error(f"Configuration validation error: {message}")
            raise ConfigurationException(
                f"Configuration validation error: {message}"
            )
        return parsed

    def _process_config(self, raw: Dict[str, Any]) -> Dict[str, ContractProfile]:
        environ = self._environ if self._environ is not None else os.environ
        contracts: Dict[str, ContractProfile] = {}

        for contract_id, data in raw["contracts"].items():
            rpc_ref = data["rpcUrlRef"]
            rpc_url = environ.get(rpc_ref)
            if not rpc_url:
                raise ConfigurationException(
                    f"Environment variable {rpc_ref} not found for contract {contract_id}"
                )

            fallback_urls = []
            for ref in data.get("fallbackRpcUrlRefs", []):
                url = environ.get(ref)
                if url:
                    fallback_urls.append(url)
                else:
                    logger.warning(
                        f"Fallback RPC URL environment variable {ref} not found "
                        f"for contract {contract_id}"
                    )

            campaigns = {
                campaign_id: self._build_campaign(campaign_id, campaign)
                for campaign_id, campaign in data.get("campaigns", {}).items()
            }

            contracts[contract_id] = ContractProfile(
                contract_id=contract_id,
                name=data["name"],
                address=data["address"],
                chain_id=data["chainId"],
                rpc_url=rpc_url,
                fallback_rpc_urls=tuple(fallback_urls),
                campaigns=MappingProxyType(campaigns),
                start_block=data.get("startBlock", 1),
                average_block_time=data.get("averageBlockTime"),
                privileged_role=data.get(
                    "privilegedRole", LedgerConstants.DEFAULT_PRIVILEGED_ROLE
                ),
            )

        logger.info(f"Loaded configuration with {len(contracts)} contracts")
        return contracts

    @staticmethod
    def _build_campaign(campaign_id: str, data: Dict[str, Any]) -> Campaign:
        return Campaign(
            campaign_id=campaign_id,
            name=data["name"],
            start_timestamp=to_timestamp(data["startDate"]),
            end_timestamp=to_timestamp(data["endDate"], end_of_day=True),
            description=data.get("description", ""),
            start_date=data["startDate"],
            end_date=data["endDate"],
        )

    def reload(self) -> None:
        """
        Re-read the configuration file and swap in the new snapshot.

        Raises:
            ConfigurationException: If the file is missing, malformed or
                references unset environment variables. The previous
                snapshot stays active in that case.
        """
        raw = self._load_raw_config()
        contracts = self._process_config(raw)
        with self._lock:
            self._contracts = MappingProxyType(contracts)
        logger.info("Configuration reloaded successfully")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_contract_profile(self, contract_id: str) -> ContractProfile:
        """
        Get a contract profile by ID.

        Raises:
            InvalidInputException: If contract_id is empty.
            ContractNotFoundException: If the contract is not configured.
        """
        if not contract_id:
            raise InvalidInputException("Contract ID is required")

        profile = self._contracts.get(contract_id)
        if profile is None:
            logger.error(f"Contract not found: {contract_id}")
            raise ContractNotFoundException(contract_id)
        return profile

    def get_campaign(self, contract_id: str, campaign_id: str) -> Optional[Campaign]:
        """Get a campaign, or None when the contract has no such campaign."""
        if not contract_id or not campaign_id:
            raise InvalidInputException(
                "Both contract ID and campaign ID are required"
            )
        return self.get_contract_profile(contract_id).get_campaign(campaign_id)

    def get_contract_campaigns(self, contract_id: str) -> Mapping[str, Campaign]:
        return self.get_contract_profile(contract_id).campaigns

    def list_contract_ids(self) -> List[str]:
        return list(self._contracts.keys())

    def is_within_campaign_period(
        self, timestamp: int, contract_id: str, campaign_id: str
    ) -> bool:
        """Whether ``timestamp`` falls inside the campaign window (inclusive)."""
        campaign = self.get_campaign(contract_id, campaign_id)
        if campaign is None:
            raise CampaignNotFoundException(contract_id, campaign_id)
        return campaign.start_timestamp <= timestamp <= campaign.end_timestamp
