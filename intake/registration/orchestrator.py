"""
SubmissionOrchestrator — moves a submission from Draft to Finalized.

    Draft ──confirm (stages 1-2 clean)──▶ PendingConfirmation
      ▲                                        │
      └──────── stage 3 fails ◀──finalize──────┤
                                               ▼
                                   Finalized (registration committed,
                                              session deleted)

Autosave (save_draft) always persists what the user typed and moves the
submission back to Draft; stages 1-2 run only to return feedback.

finalize() is idempotent per session id: the id is stored as the
registration's submission_key and looked up before anything else, so a client
retrying after a lost response receives the registration created the first
time instead of a second one or a "session not found".

Every write to an existing session (autosave, confirm, discard, finalize) runs
under one per-session lock, so an autosave never interleaves with the
external checks of a finalize that is in flight.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional

from intake.errors import SessionNotFoundError
from intake.registration.pipeline import ValidationPipeline, ValidationResult
from intake.registration.repository import RegistrationRepository
from intake.registration.schemas import DraftSubmission, Registration, SubmissionState
from intake.sessions.schemas import SessionRecord
from intake.sessions.store import SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DraftOutcome:
    session: SessionRecord
    validation: ValidationResult
    created: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {**self.session.to_public(), "validation": self.validation.to_dict()}


@dataclass(frozen=True)
class FinalizeOutcome:
    state: SubmissionState
    validation: Optional[ValidationResult] = None
    registration: Optional[Registration] = None
    replayed: bool = False

    @property
    def finalized(self) -> bool:
        return self.state is SubmissionState.finalized


class SubmissionOrchestrator:
    def __init__(
        self,
        sessions: SessionStore,
        pipeline: ValidationPipeline,
        registrations: RegistrationRepository,
    ) -> None:
        self.sessions = sessions
        self.pipeline = pipeline
        self.registrations = registrations
        # session_id → [lock, number of callers holding or waiting on it]
        self._locks: Dict[str, List[Any]] = {}

    @staticmethod
    def _normalize(fields: Mapping[str, Any]) -> Dict[str, Any]:
        return DraftSubmission.from_flat(fields).to_flat()

    # ------------------------------------------------------------------
    # Draft loop
    # ------------------------------------------------------------------

    async def save_draft(
        self,
        session_id: Optional[str],
        fields: Mapping[str, Any],
    ) -> DraftOutcome:
        """Create or overwrite the draft. Raises SessionNotFoundError for an unknown/expired id."""
        validation = self.pipeline.validate_local(fields)
        payload = self._normalize(fields)
        if session_id is None:
            record = await self.sessions.create(payload, SubmissionState.draft)
            return DraftOutcome(session=record, validation=validation, created=True)
        async with self._session_lock(session_id):
            record = await self.sessions.update(session_id, payload, SubmissionState.draft)
        return DraftOutcome(session=record, validation=validation)

    async def get_draft(self, session_id: str) -> SessionRecord:
        return await self.sessions.get(session_id)

    async def discard(self, session_id: str) -> None:
        async with self._session_lock(session_id):
            await self.sessions.delete(session_id)

    async def validate(
        self,
        fields: Mapping[str, Any],
        include_business_rules: bool = False,
    ) -> ValidationResult:
        """Validate without persisting anything."""
        return await self.pipeline.validate(fields, include_business_rules)

    # ------------------------------------------------------------------
    # Confirmation and finalization
    # ------------------------------------------------------------------

    async def confirm(self, session_id: str) -> DraftOutcome:
        """Stages 1-2 on the stored draft; clean → PendingConfirmation, else stays Draft."""
        async with self._session_lock(session_id):
            record = await self.sessions.get(session_id)
            validation = self.pipeline.validate_local(record.payload)
            state = SubmissionState.pending_confirmation if validation.valid else SubmissionState.draft
            if state is not record.state:
                record = await self.sessions.update(session_id, record.payload, state)
        logger.info("Confirm session_id=%s state=%s", session_id, state.value)
        return DraftOutcome(session=record, validation=validation)

    async def finalize(self, session_id: str) -> FinalizeOutcome:
        async with self._session_lock(session_id):
            return await self._finalize_locked(session_id)

    @asynccontextmanager
    async def _session_lock(self, session_id: str) -> AsyncIterator[None]:
        entry = self._locks.setdefault(session_id, [asyncio.Lock(), 0])
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                self._locks.pop(session_id, None)

    async def _finalize_locked(self, session_id: str) -> FinalizeOutcome:
        existing = await self.registrations.get_by_submission_key(session_id)
        if existing is not None:
            logger.info(
                "Finalize replay session_id=%s registration_id=%s",
                session_id,
                existing.registration_id,
            )
            await self._delete_quietly(session_id)
            return FinalizeOutcome(
                state=SubmissionState.finalized,
                registration=existing,
                replayed=True,
            )

        record = await self.sessions.get(session_id)

        local = self.pipeline.validate_local(record.payload)
        if not local.valid:
            if record.state is not SubmissionState.draft:
                await self.sessions.update(session_id, record.payload, SubmissionState.draft)
            logger.info("Finalize rejected at %s session_id=%s", local.failed_stage.value, session_id)
            return FinalizeOutcome(state=SubmissionState.draft, validation=local)

        if record.state is not SubmissionState.pending_confirmation:
            record = await self.sessions.update(
                session_id, record.payload, SubmissionState.pending_confirmation
            )

        validation = await self.pipeline.validate(record.payload, include_business_rules=True)
        if not validation.valid:
            # Only the state goes back; the stored values are rewritten as they are now.
            current = await self.sessions.get(session_id)
            await self.sessions.update(session_id, current.payload, SubmissionState.draft)
            logger.info("Finalize rejected at business_rules session_id=%s", session_id)
            return FinalizeOutcome(state=SubmissionState.draft, validation=validation)

        registration = await self.registrations.create(
            session_id, DraftSubmission.from_flat(record.payload)
        )
        await self._delete_quietly(session_id)
        logger.info(
            "Finalized session_id=%s registration_id=%s",
            session_id,
            registration.registration_id,
        )
        return FinalizeOutcome(
            state=SubmissionState.finalized,
            validation=validation,
            registration=registration,
        )

    async def _delete_quietly(self, session_id: str) -> None:
        try:
            await self.sessions.delete(session_id)
        except SessionNotFoundError:
            pass
