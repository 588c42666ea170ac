"""
Retry utilities for handling transient ledger failures.

This module provides a functional retry helper with a per-attempt timeout
and configurable backoff strategies.

Exception Handling:
- By default, retries on RetryableException, timeouts and RPC errors
- NonRetryableException is never retried (propagates immediately)
- Can customize retryable_exceptions per operation
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

from web3.exceptions import (
    BadFunctionCallOutput,
    BlockNotFound,
    Web3Exception,
)

from quest_verifier.shared.exceptions import RetryableException

T = TypeVar("T")

logger = logging.getLogger(__name__)

# Default retryable exceptions (network/RPC related + RetryableException hierarchy)
DEFAULT_RETRYABLE_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    RetryableException,  # Includes LedgerQueryException
    asyncio.TimeoutError,
    ConnectionError,
    TimeoutError,
    OSError,
    Web3Exception,  # Base class for most web3 errors
    BadFunctionCallOutput,  # Malformed RPC responses
    BlockNotFound,
    ValueError,  # web3 surfaces JSON-RPC error payloads as ValueError
)


class RetryConfig:
    """
    Configuration class for retry behavior.

    max_attempts counts the first try, so ``max_attempts=3`` means one call
    plus two retries. ``timeout`` bounds every single attempt.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        exponential: bool = False,
        timeout: Optional[float] = None,
        retryable_exceptions: Optional[Tuple[Type[Exception], ...]] = None,
    ):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential = exponential
        self.timeout = timeout
        self.retryable_exceptions = (
            retryable_exceptions or DEFAULT_RETRYABLE_EXCEPTIONS
        )

    @classmethod
    def for_ledger(
        cls, max_retries: int, base_delay: float, timeout: float
    ) -> "RetryConfig":
        """Linear backoff config used for ledger log queries."""
        return cls(
            max_attempts=max_retries + 1,
            base_delay=base_delay,
            max_delay=max(base_delay * (max_retries + 1), base_delay),
            exponential=False,
            timeout=timeout,
        )

    def compute_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        return compute_delay(
            attempt, self.base_delay, self.max_delay, self.exponential
        )


def compute_delay(
    attempt: int, base_delay: float, max_delay: float, exponential: bool
) -> float:
    """
    Backoff delay for a 1-based retry attempt.

    Exponential: base_delay * 2^(attempt-1). Linear: base_delay * attempt.
    Both are capped at max_delay.
    """
    if exponential:
        delay = base_delay * (2 ** (attempt - 1))
    else:
        delay = base_delay * attempt
    return min(delay, max_delay)


async def retry_async_operation(
    operation: Callable[..., Awaitable[T]],
    *args: Any,
    config: Optional[RetryConfig] = None,
    operation_name: Optional[str] = None,
    **kwargs: Any,
) -> T:
    """
    Retry an async operation with a per-attempt timeout and backoff.

    Args:
        operation: Async function to call
        *args: Positional arguments for the operation
        config: Retry settings (attempts, delays, per-attempt timeout)
        operation_name: Optional name for logging
        **kwargs: Keyword arguments for the operation

    Returns:
        Result of the operation

    Raises:
        The last exception once all attempts are exhausted.

    Example:
        logs = await retry_async_operation(
            client.get_logs,
            from_block, to_block, topics,
            config=RetryConfig(max_attempts=3, base_delay=0.5, timeout=4),
            operation_name="get_logs",
        )
    """
    if config is None:
        config = RetryConfig()

    name = operation_name or getattr(operation, "__name__", "operation")
    last_exception: Optional[BaseException] = None

    for attempt in range(config.max_attempts):
        try:
            if config.timeout is not None:
                return await asyncio.wait_for(
                    operation(*args, **kwargs), timeout=config.timeout
                )
            return await operation(*args, **kwargs)
        except config.retryable_exceptions as e:
            last_exception = e

            if attempt < config.max_attempts - 1:
                delay = config.compute_delay(attempt + 1)

                logger.warning(
                    f"Attempt {attempt + 1}/{config.max_attempts} failed for "
                    f"{name}: {e!r}. Retrying in {delay:.2f}s..."
                )

                await asyncio.sleep(delay)

    if last_exception:
        raise last_exception
    raise RuntimeError(
        "Unexpected state: no exception but all attempts exhausted"
    )


LEDGER_RETRY_CONFIG = RetryConfig(
    max_attempts=3,
    base_delay=0.25,
    max_delay=1.0,
    exponential=False,
    timeout=4.0,
)
