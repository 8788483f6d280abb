"""
Security routes — GET /api/v1/csrf-token
"""
import logging

from fastapi import APIRouter, Depends

from intake.container import ServiceContainer, get_container
from intake.responses import success_body
from intake.security.dependencies import enforce_csrf_issue_rate_limit

router = APIRouter(prefix="/api/v1", tags=["security"])
logger = logging.getLogger(__name__)


@router.get("/csrf-token", dependencies=[Depends(enforce_csrf_issue_rate_limit)])
async def issue_csrf_token(container: ServiceContainer = Depends(get_container)) -> dict:
    """
    Issue a single-use anti-forgery token.

    The client sends it back in the X-CSRF-Token header (name configurable)
    on exactly one mutating request.
    """
    token = await container.csrf.issue_token()
    logger.debug("CSRF token issued")
    return success_body({
        "csrf_token": token,
        "header_name": container.settings.csrf_header_name,
        "expires_in": int(container.csrf.ttl.total_seconds()),
    })
