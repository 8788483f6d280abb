"""
Session HTTP routes — the wizard's autosave surface.

    POST   /api/v1/sessions                 create a draft
    GET    /api/v1/sessions/{id}            resume a draft
    PUT    /api/v1/sessions/{id}            autosave (whole-payload replace, sliding expiry)
    DELETE /api/v1/sessions/{id}            discard
    POST   /api/v1/sessions/{id}/extend     push expiry without changing the draft
    POST   /api/v1/sessions/{id}/confirm    Draft → PendingConfirmation when stages 1-2 pass

Mutating routes require a CSRF token and are rate limited. Unknown and
expired ids both answer 404 SESSION_NOT_FOUND.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from intake.container import ServiceContainer, get_container
from intake.responses import make_success_response, success_body
from intake.security.dependencies import enforce_rate_limit, require_csrf_token
from intake.sessions.schemas import ExtendSessionRequest, SaveDraftRequest

router = APIRouter(prefix="/api/v1/sessions", tags=["sessions"])
logger = logging.getLogger(__name__)

_MUTATING = [Depends(require_csrf_token), Depends(enforce_rate_limit)]


@router.post("", dependencies=_MUTATING, status_code=201)
async def create_session(
    body: SaveDraftRequest,
    container: ServiceContainer = Depends(get_container),
) -> JSONResponse:
    """
    Start a wizard session with the first draft.

    The draft is stored even if it does not validate yet; the response carries
    the stage 1-2 result as feedback.
    """
    outcome = await container.orchestrator.save_draft(None, body.user_data)
    return make_success_response(outcome.to_dict(), status_code=201)


@router.get("/{session_id}", dependencies=[Depends(enforce_rate_limit)])
async def get_session(
    session_id: str,
    container: ServiceContainer = Depends(get_container),
) -> dict:
    record = await container.orchestrator.get_draft(session_id)
    return success_body(record.to_public())


@router.put("/{session_id}", dependencies=_MUTATING)
async def update_session(
    session_id: str,
    body: SaveDraftRequest,
    container: ServiceContainer = Depends(get_container),
) -> dict:
    outcome = await container.orchestrator.save_draft(session_id, body.user_data)
    return success_body(outcome.to_dict())


@router.delete("/{session_id}", dependencies=_MUTATING)
async def delete_session(
    session_id: str,
    container: ServiceContainer = Depends(get_container),
) -> dict:
    await container.orchestrator.discard(session_id)
    logger.info("Draft discarded session_id=%s", session_id)
    return success_body({"session_id": session_id, "deleted": True})


@router.post("/{session_id}/extend", dependencies=_MUTATING)
async def extend_session(
    session_id: str,
    body: Optional[ExtendSessionRequest] = Body(default=None),
    container: ServiceContainer = Depends(get_container),
) -> dict:
    seconds = body.extend_seconds if body is not None else None
    record = await container.sessions.extend(session_id, seconds)
    return success_body(record.to_public())


@router.post("/{session_id}/confirm", dependencies=_MUTATING)
async def confirm_session(
    session_id: str,
    container: ServiceContainer = Depends(get_container),
) -> dict:
    """
    Move the draft to PendingConfirmation.

    Returns 200 in both cases; `state` and `validation.errors` tell the client
    whether the confirmation screen can be shown.
    """
    outcome = await container.orchestrator.confirm(session_id)
    return success_body(outcome.to_dict())
