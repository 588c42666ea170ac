"""Contract and campaign configuration."""

from .loader import ConfigLoader
from .models import Campaign, ContractProfile

__all__ = ["Campaign", "ConfigLoader", "ContractProfile"]
