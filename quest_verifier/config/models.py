"""
Type definitions for contract and campaign configuration.
"""

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple, TypedDict

from quest_verifier.utils.dates import format_timestamp

# =============================================================================
# TYPED DICTS (for JSON serialization)
# =============================================================================


class CampaignDict(TypedDict):
    """Campaign information as exposed by the HTTP API."""

    name: str
    startDate: str
    endDate: str
    description: str


class ContractSummaryDict(TypedDict):
    """Contract information as exposed by the HTTP API (no RPC URLs)."""

    name: str
    address: str
    chainId: int
    campaigns: Dict[str, CampaignDict]


# =============================================================================
# DATACLASSES
# =============================================================================


@dataclass(frozen=True)
class Campaign:
    """A dated campaign window belonging to exactly one contract.

    ``end_timestamp`` is inclusive.
    """

    campaign_id: str
    name: str
    start_timestamp: int
    end_timestamp: int
    description: str = ""
    start_date: str = ""
    end_date: str = ""

    def to_dict(self) -> CampaignDict:
        return {
            "name": self.name,
            "startDate": self.start_date or format_timestamp(self.start_timestamp),
            "endDate": self.end_date or format_timestamp(self.end_timestamp),
            "description": self.description,
        }


@dataclass(frozen=True)
class ContractProfile:
    """Everything the engine needs to know about one verified contract.

    Profiles are immutable; a configuration reload replaces them wholesale.
    """

    contract_id: str
    name: str
    address: str
    chain_id: int
    rpc_url: str
    fallback_rpc_urls: Tuple[str, ...] = ()
    campaigns: Mapping[str, Campaign] = field(default_factory=dict)
    start_block: int = 1
    average_block_time: Optional[float] = None
    # View function returning the privileged account; None disables the check
    privileged_role: Optional[str] = "minter"

    @property
    def endpoints(self) -> Tuple[str, ...]:
        """Primary endpoint followed by fallbacks, without duplicates."""
        ordered = []
        for url in (self.rpc_url, *self.fallback_rpc_urls):
            if url and url not in ordered:
                ordered.append(url)
        return tuple(ordered)

    def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        return self.campaigns.get(campaign_id)

    def to_summary(self) -> ContractSummaryDict:
        return {
            "name": self.name,
            "address": self.address,
            "chainId": self.chain_id,
            "campaigns": campaigns_to_dict(self.campaigns),
        }


def campaigns_to_dict(campaigns: Mapping[str, Campaign]) -> Dict[str, CampaignDict]:
    return {cid: campaign.to_dict() for cid, campaign in campaigns.items()}
