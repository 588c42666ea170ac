"""All constants for the project"""

from dotenv import load_dotenv

load_dotenv()


class LedgerConstants:
    """Ledger/event related constants"""

    INTERACTION_EVENT = "Transfer"
    SENDER_ARG = "from"
    RECIPIENT_ARG = "to"

    DEFAULT_ABI = "interaction_token"
    DEFAULT_PRIVILEGED_ROLE = "minter"

    PROVIDER_REQUEST_TIMEOUT = 10

    # Average seconds per block, used by the arithmetic block estimator
    CHAIN_BLOCK_TIMES = {
        1: 12.0,  # Ethereum
        10: 2.0,  # Optimism
        56: 3.0,  # BSC
        137: 2.0,  # Polygon
        8453: 2.0,  # Base
        42161: 0.25,  # Arbitrum
    }


class CacheKeys:
    """Window labels used when building result cache keys"""

    ALL_TIME = "all"
    CUSTOM_RANGE = "custom"


DAY = 24 * 60 * 60
