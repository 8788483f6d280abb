"""
Master-data and address lookup routes.

    GET /api/v1/plans
    GET /api/v1/options?plan_type=A
    GET /api/v1/address/search?postal_code=100-0001
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from intake.container import ServiceContainer, get_container
from intake.errors import AddressServiceUnavailableError, ExternalCollaboratorError, InvalidRequestError
from intake.external.address import normalize_postal_code
from intake.registration.catalog import VALID_PLANS
from intake.responses import success_body
from intake.security.dependencies import enforce_rate_limit

router = APIRouter(prefix="/api/v1", tags=["master_data"], dependencies=[Depends(enforce_rate_limit)])
logger = logging.getLogger(__name__)


@router.get("/plans")
async def list_plans(container: ServiceContainer = Depends(get_container)) -> dict:
    plans = await container.external.catalog.list_plans()
    return success_body({"plans": [p.model_dump() for p in plans]})


@router.get("/options")
async def list_options(
    plan_type: Optional[str] = Query(default=None, max_length=1),
    container: ServiceContainer = Depends(get_container),
) -> dict:
    if plan_type is not None and plan_type not in VALID_PLANS:
        raise InvalidRequestError(f"Unknown plan_type '{plan_type}'", details={"plan_type": "Unknown plan type"})
    options = await container.external.catalog.list_options(plan_type)
    return success_body({"options": [o.model_dump() for o in options]})


@router.get("/address/search")
async def search_address(
    postal_code: str = Query(..., min_length=7, max_length=8),
    container: ServiceContainer = Depends(get_container),
) -> dict:
    try:
        normalize_postal_code(postal_code)
    except ValueError as exc:
        raise InvalidRequestError(str(exc), details={"postal_code": str(exc)}) from exc
    try:
        address = await container.external.address.search_by_postal_code(postal_code)
    except ExternalCollaboratorError as exc:
        logger.warning("Address lookup failed reason=%s", exc.reason)
        raise AddressServiceUnavailableError() from exc
    return success_body(address.model_dump())
