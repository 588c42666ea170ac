"""Composition root for the verification engine."""

from typing import Optional

from quest_verifier.config.loader import ConfigLoader
from quest_verifier.ledger.pool import LedgerClientPool
from quest_verifier.shared.logging import get_logger
from quest_verifier.shared.settings import EngineSettings
from quest_verifier.verification.cache import ResultCache
from quest_verifier.verification.service import VerificationService

logger = get_logger(__name__)


def build_verification_service(
    config_path: Optional[str] = None,
    settings: Optional[EngineSettings] = None,
) -> VerificationService:
    """
    Load configuration and wire a VerificationService with a fresh cache.

    Called once at process startup by the HTTP app and the CLI.

    Raises:
        ConfigurationException: If the contracts file cannot be loaded.
    """
    settings = settings or EngineSettings.from_env()
    config = ConfigLoader(config_path)
    cache = ResultCache(default_ttl=settings.cache_ttl)
    service = VerificationService(
        config=config,
        pool=LedgerClientPool(config),
        cache=cache,
        settings=settings,
    )
    logger.info(
        f"Verification service ready for {len(config.list_contract_ids())} "
        f"contract(s), block strategy {settings.block_strategy}"
    )
    return service
