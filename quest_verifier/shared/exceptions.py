"""
Exception hierarchy for the Quest Verifier.

Exception Categories:
- RetryableException: Transient failures that may succeed on retry (RPC, network)
- NonRetryableException: Permanent failures that won't benefit from retry (bad input)
- ConfigurationException: Startup/reload errors that prevent operation

Only the non-retryable family ever reaches callers of the verification
engine. Ledger failures and timeouts are recovered inside the engine and
collapse to a negative verdict.
"""


class RetryableException(Exception):
    """
    Base class for exceptions that may succeed on retry.

    Use for transient failures like:
    - RPC timeouts
    - Rate limiting
    - Block range rejections from an overloaded node
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NonRetryableException(Exception):
    """
    Base class for exceptions that won't benefit from retry.

    Use for permanent failures like:
    - Invalid input data
    - Unknown contract or campaign identifiers
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationException(NonRetryableException):
    """
    Exception for configuration/startup errors.

    Use when:
    - The contracts file cannot be found or parsed
    - The contracts file does not match the expected schema
    - A referenced RPC environment variable is missing
    """

    pass


class InvalidInputException(NonRetryableException):
    """Malformed address, date or missing identifier."""

    pass


class ContractNotFoundException(NonRetryableException):
    """The contract identifier is not present in the loaded configuration."""

    def __init__(self, contract_id: str):
        super().__init__(f"Contract not found: {contract_id}")
        self.contract_id = contract_id


class CampaignNotFoundException(NonRetryableException):
    """The campaign identifier does not exist under the given contract."""

    def __init__(self, contract_id: str, campaign_id: str):
        super().__init__(f"Campaign not found: {campaign_id}")
        self.contract_id = contract_id
        self.campaign_id = campaign_id


class LedgerQueryException(RetryableException):
    """
    Exception for failed ledger (JSON-RPC) calls.

    Inherits from RetryableException because node failures are usually
    transient (rate limits, timeouts, a fallback endpoint still healthy).
    """

    pass
