"""
HTTP boundary for the verification engine.

Verification routes always answer with ``{"result": 1}`` or
``{"result": 0}``. Caller mistakes get a 400 with an ``error`` message next
to ``result: 0``; any internal failure is folded into a 200 ``result: 0``
so quest platforms can always parse the body.

Usage:
    uvicorn --factory quest_verifier.api.app:create_app --port 3001
"""

from contextlib import asynccontextmanager
from typing import Optional

from eth_utils import is_address
from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from quest_verifier import __version__
from quest_verifier.shared.exceptions import (
    CampaignNotFoundException,
    ContractNotFoundException,
    NonRetryableException,
)
from quest_verifier.shared.logging import get_logger
from quest_verifier.utils.dates import to_timestamp
from quest_verifier.verification.factory import build_verification_service
from quest_verifier.verification.service import VerificationService

logger = get_logger(__name__)


def _verdict(value: bool) -> dict:
    return {"result": 1 if value else 0}


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"result": 0, "error": message})


def _validate(address: str, contract: Optional[str]) -> Optional[JSONResponse]:
    if not contract:
        return _bad_request("Contract ID is required")
    if not address or not is_address(address.lower()):
        return _bad_request("Invalid Ethereum address")
    return None


def _service(request: Request) -> VerificationService:
    return request.app.state.service


router = APIRouter(prefix="/api")


# ==================== Verification ====================


@router.get("/verify/{address}")
async def verify(
    request: Request,
    address: str,
    contract: Optional[str] = Query(None),
    campaign: Optional[str] = Query(None),
):
    """Has the address interacted with the contract (optionally in a campaign)?"""
    invalid = _validate(address, contract)
    if invalid is not None:
        return invalid

    try:
        result = await _service(request).has_interacted(address, contract, campaign)
    except NonRetryableException as e:
        logger.warning(f"Rejected verification request: {e.message}")
        return _bad_request(e.message)
    except Exception as e:
        logger.error(f"Error verifying {address} on {contract}: {e!r}")
        return _verdict(False)
    return _verdict(result)


@router.get("/verify-in-range/{address}")
async def verify_in_range(
    request: Request,
    address: str,
    contract: Optional[str] = Query(None),
    campaign: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
):
    """Interaction check bounded by a campaign or an explicit date range."""
    invalid = _validate(address, contract)
    if invalid is not None:
        return invalid

    start_ts = end_ts = None
    if not campaign:
        if not start_date or not end_date:
            return _bad_request(
                "Either campaign or both startDate and endDate are required"
            )
        try:
            start_ts = to_timestamp(start_date)
            end_ts = to_timestamp(end_date, end_of_day=True)
        except ValueError:
            return _bad_request("Invalid date format")
        if start_ts > end_ts:
            return _bad_request("startDate must not be after endDate")

    try:
        result = await _service(request).has_interacted_in_time_range(
            address, contract, start_ts, end_ts, campaign_id=campaign
        )
    except NonRetryableException as e:
        logger.warning(f"Rejected verification request: {e.message}")
        return _bad_request(e.message)
    except Exception as e:
        logger.error(f"Error verifying {address} on {contract} in range: {e!r}")
        return _verdict(False)
    return _verdict(result)


# ==================== Contracts ====================


@router.get("/contracts")
async def list_contracts(request: Request):
    return {"success": True, "contracts": _service(request).get_available_contracts()}


@router.get("/contracts/{contract_id}/campaigns/{campaign_id}")
async def get_campaign(request: Request, contract_id: str, campaign_id: str):
    try:
        campaign = _service(request).get_campaign(contract_id, campaign_id)
    except (ContractNotFoundException, CampaignNotFoundException) as e:
        return JSONResponse(
            status_code=404, content={"success": False, "error": e.message}
        )
    return {"success": True, "campaign": campaign}


# ==================== Administration ====================


@router.get("/reload-config")
async def reload_config(request: Request):
    try:
        _service(request).reload_configuration()
    except Exception as e:
        logger.error(f"Configuration reload failed: {e!r}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": f"Failed to reload configuration: {e}"},
        )
    return {"success": True, "message": "Configuration reloaded successfully"}


@router.get("/clear-cache")
async def clear_cache(request: Request):
    _service(request).clear_cache()
    return {"success": True, "message": "Cache cleared successfully"}


@router.get("/health")
async def health(request: Request):
    return {
        "status": "healthy",
        "contracts": len(_service(request).config.list_contract_ids()),
    }


# ==================== Application ====================


def create_app(
    service: Optional[VerificationService] = None,
    config_path: Optional[str] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        service: Pre-built engine (tests inject one); when omitted the
            engine is built from configuration on startup.
        config_path: Contracts file used when building the engine.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifecycle management"""
        if getattr(app.state, "service", None) is None:
            app.state.service = build_verification_service(config_path)
        app.state.service.start_background_tasks()
        logger.info("Quest verifier API started")

        yield

        await app.state.service.stop_background_tasks()
        logger.info("Quest verifier API stopped")

    app = FastAPI(
        title="Quest Verifier",
        description="Wallet/contract interaction verification for quest platforms",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _bad_request("Invalid request parameters")

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url.path}: {exc!r}")
        return JSONResponse(status_code=200, content={"result": 0})

    app.include_router(router)
    return app

