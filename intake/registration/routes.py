"""
Registration HTTP routes.

    POST /api/v1/registrations/validate   validate only, nothing is stored
    POST /api/v1/registrations            finalize a session's draft

Finalize answers:
    201  registration created, session deleted
    200  replay of an already-finalized session (same registration)
    422  VALIDATION_ERROR          stage 1-2 errors, session stays Draft
    409  BUSINESS_RULE_VIOLATION   stage 3 errors, session reverted to Draft
    404  SESSION_NOT_FOUND         unknown or expired session
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from intake.container import ServiceContainer, get_container
from intake.errors import ErrorKind, PipelineError
from intake.registration.schemas import FinalizeRequest, ValidateRequest
from intake.responses import make_error_response, make_success_response, success_body
from intake.security.dependencies import enforce_rate_limit, require_csrf_token

router = APIRouter(prefix="/api/v1/registrations", tags=["registrations"])
logger = logging.getLogger(__name__)

_STATUS_BY_KIND = {
    ErrorKind.validation: 422,
    ErrorKind.business_rule: 409,
}


def _pipeline_error_response(error: PipelineError) -> JSONResponse:
    return make_error_response(
        code=error.code,
        message=error.message,
        details=error.details,
        status_code=_STATUS_BY_KIND.get(error.kind, 422),
    )


@router.post("/validate", dependencies=[Depends(enforce_rate_limit)])
async def validate_registration(
    body: ValidateRequest,
    container: ServiceContainer = Depends(get_container),
) -> dict:
    """
    Run stages 1-2 (and stage 3 when include_business_rules is true).

    Always 200: the verdict is in data.valid / data.errors, so the wizard can
    show field messages while the user types.
    """
    result = await container.orchestrator.validate(body.user_data, body.include_business_rules)
    return success_body(result.to_dict())


@router.post("", dependencies=[Depends(require_csrf_token), Depends(enforce_rate_limit)])
async def finalize_registration(
    body: FinalizeRequest,
    container: ServiceContainer = Depends(get_container),
) -> JSONResponse:
    outcome = await container.orchestrator.finalize(body.session_id)

    if outcome.finalized and outcome.registration is not None:
        status_code = 200 if outcome.replayed else 201
        logger.info(
            "Finalize answered status=%d registration_id=%s",
            status_code,
            outcome.registration.registration_id,
        )
        return make_success_response(outcome.registration.to_public(), status_code=status_code)

    error = outcome.validation.error if outcome.validation is not None else None
    if error is None:
        raise RuntimeError("finalize returned neither a registration nor an error")
    logger.info("Finalize rejected code=%s fields=%s", error.code, sorted(error.details))
    return _pipeline_error_response(error)
