"""
Session data contracts.

SessionRecord is what every SessionStore backend returns. The request/response
models are the HTTP surface of /api/v1/sessions.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from intake.registration.schemas import SubmissionState


class SessionRecord(BaseModel):
    """One stored session. payload is the flat Draft Submission mapping."""
    model_config = ConfigDict(frozen=True)

    session_id: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    state: SubmissionState = SubmissionState.draft
    created_at: datetime
    updated_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def to_public(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "user_data": self.payload,
            "state": self.state.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }


class SaveDraftRequest(BaseModel):
    """Body of POST /api/v1/sessions and PUT /api/v1/sessions/{id}."""
    model_config = ConfigDict(extra="forbid")

    user_data: Dict[str, Any] = Field(default_factory=dict)


class ExtendSessionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    extend_seconds: Optional[int] = Field(
        default=None,
        gt=0,
        le=24 * 60 * 60,
        description="New lifetime measured from now. Defaults to the session TTL.",
    )
