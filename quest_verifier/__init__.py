"""Quest Verifier - wallet/contract interaction verification for quest platforms."""

__version__ = "1.0.0"

from .config import ConfigLoader
from .verification import VerificationService, build_verification_service

__all__ = ["ConfigLoader", "VerificationService", "build_verification_service"]
