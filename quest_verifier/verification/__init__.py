"""Verification engine: block dating, direct checks, scanning and caching."""

from .block_dates import (
    ArithmeticBlockEstimator,
    BinarySearchBlockLocator,
    BlockLocator,
    build_block_locator,
)
from .cache import ResultCache, make_cache_key
from .direct import DirectInteractionChecker
from .factory import build_verification_service
from .scanner import ActivityScanner
from .service import VerificationService

__all__ = [
    "ActivityScanner",
    "ArithmeticBlockEstimator",
    "BinarySearchBlockLocator",
    "BlockLocator",
    "DirectInteractionChecker",
    "ResultCache",
    "VerificationService",
    "build_block_locator",
    "build_verification_service",
    "make_cache_key",
]
