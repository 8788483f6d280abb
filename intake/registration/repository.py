"""
Registration repositories used by the orchestrator.

SqlRegistrationRepository wraps the store.py facade in its own transaction;
InMemoryRegistrationRepository backs development mode and tests. Both resolve
a second create() for the same submission_key to the registration that already
exists.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Dict, Optional, Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from intake import store
from intake.clock import Clock, utc_now
from intake.registration.schemas import DraftSubmission, Registration

logger = logging.getLogger(__name__)


class RegistrationRepository(Protocol):
    async def get_by_submission_key(self, submission_key: str) -> Optional[Registration]:
        ...

    async def create(self, submission_key: str, draft: DraftSubmission) -> Registration:
        ...


class InMemoryRegistrationRepository:
    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._by_key: Dict[str, Registration] = {}
        self._lock = asyncio.Lock()

    async def get_by_submission_key(self, submission_key: str) -> Optional[Registration]:
        return self._by_key.get(submission_key)

    async def create(self, submission_key: str, draft: DraftSubmission) -> Registration:
        async with self._lock:
            existing = self._by_key.get(submission_key)
            if existing is not None:
                return existing
            registration = Registration(
                registration_id=str(uuid.uuid4()),
                submission_key=submission_key,
                submission=draft,
                created_at=self._clock(),
            )
            self._by_key[submission_key] = registration
        logger.info(
            "Saved registration registration_id=%s submission_key=%s",
            registration.registration_id,
            submission_key,
        )
        return registration

    def __len__(self) -> int:
        return len(self._by_key)


class SqlRegistrationRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_by_submission_key(self, submission_key: str) -> Optional[Registration]:
        async with self._session_factory() as db:
            return await store.get_registration_by_submission_key(db, submission_key)

    async def create(self, submission_key: str, draft: DraftSubmission) -> Registration:
        async with self._session_factory() as db:
            try:
                registration = await store.save_registration(db, submission_key, draft)
                await db.commit()
                return registration
            except IntegrityError:
                await db.rollback()
                logger.info("Duplicate finalize resolved to existing row submission_key=%s", submission_key)

        existing = await self.get_by_submission_key(submission_key)
        if existing is None:
            raise RuntimeError(f"Registration for submission_key={submission_key} vanished after conflict")
        return existing
