from typing import Optional, Tuple

from eth_utils import is_address

from quest_verifier.utils.dates import to_timestamp


def validate_eth_address(address: str, param_name: str = "address") -> str:
    """Validate and return a lowercase ethereum address"""
    if not address or not isinstance(address, str):
        raise ValueError(
            f"Invalid {param_name}: address must be a non-empty string"
        )
    if not is_address(address.lower()):
        raise ValueError(
            f"Invalid {param_name}: {address} is not a valid Ethereum address"
        )
    return address.lower()


def validate_contract_id(contract_id: Optional[str]) -> str:
    """Validate a contract identifier is present"""
    if not contract_id or not contract_id.strip():
        raise ValueError("Invalid contract: a contract ID is required")
    return contract_id.strip()


def parse_date_range(start_date: str, end_date: str) -> Tuple[int, int]:
    """Parse an inclusive date range; a date-only end covers the whole day"""
    try:
        start_ts = to_timestamp(start_date)
        end_ts = to_timestamp(end_date, end_of_day=True)
    except ValueError:
        raise ValueError(
            f"Invalid date range: {start_date} - {end_date}. Use YYYY-MM-DD "
            f"or an ISO-8601 datetime"
        )
    if start_ts > end_ts:
        raise ValueError("Invalid date range: start date is after end date")
    return start_ts, end_ts
