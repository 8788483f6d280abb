"""
Session store — draft submissions keyed by an opaque id, with sliding expiry.

Backends:
  InMemorySessionStore   single process; asyncio.Lock around the record map
  RedisSessionStore      SET NX / SET XX with EX; Redis drops dead keys itself
  DatabaseSessionStore   PostgreSQL; refresh-on-write is one conditional UPDATE

Contract shared by all three:
  - expiry is checked on every read and write against the injected clock,
    so an expired record is "not found" whether or not it still exists physically
  - every update replaces the whole payload and resets expires_at to now + TTL
  - sweep_expired() only reclaims storage; correctness never depends on it
"""
from __future__ import annotations

import abc
import asyncio
import copy
import logging
import math
import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, Mapping, Optional

import redis.asyncio as aioredis
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from intake.cache import make_session_key
from intake.clock import Clock, utc_now
from intake.errors import SessionNotFoundError
from intake.models.session import IntakeSessionORM
from intake.registration.schemas import SubmissionState
from intake.sessions.schemas import SessionRecord

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL = 4 * 60 * 60


def new_session_id() -> str:
    """256 bits of randomness, URL-safe."""
    return secrets.token_urlsafe(32)


class SessionStore(abc.ABC):
    """Abstract session store. Every method raises SessionNotFoundError for unknown or expired ids."""

    def __init__(self, ttl_seconds: int = DEFAULT_SESSION_TTL, clock: Clock = utc_now) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock

    def _now(self) -> datetime:
        return self._clock()

    @abc.abstractmethod
    async def create(
        self,
        payload: Mapping[str, Any],
        state: SubmissionState = SubmissionState.draft,
    ) -> SessionRecord:
        ...

    @abc.abstractmethod
    async def get(self, session_id: str) -> SessionRecord:
        ...

    @abc.abstractmethod
    async def update(
        self,
        session_id: str,
        payload: Mapping[str, Any],
        state: SubmissionState = SubmissionState.draft,
    ) -> SessionRecord:
        ...

    @abc.abstractmethod
    async def delete(self, session_id: str) -> None:
        ...

    @abc.abstractmethod
    async def sweep_expired(self) -> int:
        ...

    @abc.abstractmethod
    async def extend(self, session_id: str, seconds: Optional[int] = None) -> SessionRecord:
        """Set expires_at to now + seconds (default TTL) without touching the payload."""

    async def exists(self, session_id: str) -> bool:
        try:
            await self.get(session_id)
        except SessionNotFoundError:
            return False
        return True

    def _lifetime(self, seconds: Optional[int]) -> timedelta:
        if seconds is None:
            return self.ttl
        if seconds <= 0:
            raise ValueError("seconds must be positive")
        return timedelta(seconds=seconds)


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------

class InMemorySessionStore(SessionStore):
    def __init__(self, ttl_seconds: int = DEFAULT_SESSION_TTL, clock: Clock = utc_now) -> None:
        super().__init__(ttl_seconds, clock)
        self._records: Dict[str, SessionRecord] = {}
        self._lock = asyncio.Lock()

    def _live(self, session_id: str, now: datetime) -> SessionRecord:
        record = self._records.get(session_id)
        if record is None or record.is_expired(now):
            raise SessionNotFoundError(session_id)
        return record

    async def create(self, payload, state=SubmissionState.draft) -> SessionRecord:
        async with self._lock:
            now = self._now()
            session_id = new_session_id()
            while session_id in self._records:
                session_id = new_session_id()
            record = SessionRecord(
                session_id=session_id,
                payload=copy.deepcopy(dict(payload)),
                state=state,
                created_at=now,
                updated_at=now,
                expires_at=now + self.ttl,
            )
            self._records[session_id] = record
        logger.info("Session created session_id=%s", session_id)
        return record

    async def get(self, session_id: str) -> SessionRecord:
        async with self._lock:
            record = self._live(session_id, self._now())
            return record.model_copy(update={"payload": copy.deepcopy(record.payload)})

    async def update(self, session_id, payload, state=SubmissionState.draft) -> SessionRecord:
        async with self._lock:
            now = self._now()
            current = self._live(session_id, now)
            record = current.model_copy(update={
                "payload": copy.deepcopy(dict(payload)),
                "state": state,
                "updated_at": now,
                "expires_at": now + self.ttl,
            })
            self._records[session_id] = record
        logger.debug("Session updated session_id=%s state=%s", session_id, state.value)
        return record

    async def delete(self, session_id: str) -> None:
        async with self._lock:
            record = self._records.pop(session_id, None)
            if record is None or record.is_expired(self._now()):
                raise SessionNotFoundError(session_id)
        logger.info("Session deleted session_id=%s", session_id)

    async def sweep_expired(self) -> int:
        async with self._lock:
            now = self._now()
            expired = [sid for sid, rec in self._records.items() if rec.is_expired(now)]
            for sid in expired:
                del self._records[sid]
        if expired:
            logger.info("Swept %d expired session(s)", len(expired))
        return len(expired)

    async def extend(self, session_id: str, seconds: Optional[int] = None) -> SessionRecord:
        lifetime = self._lifetime(seconds)
        async with self._lock:
            now = self._now()
            current = self._live(session_id, now)
            record = current.model_copy(update={"expires_at": now + lifetime})
            self._records[session_id] = record
        logger.info("Session extended session_id=%s seconds=%d", session_id, lifetime.total_seconds())
        return record

    def __len__(self) -> int:
        return len(self._records)


# ---------------------------------------------------------------------------
# Redis backend
# ---------------------------------------------------------------------------

class RedisSessionStore(SessionStore):
    """
    Key layout: intake:session:{id} → SessionRecord JSON, EX = remaining lifetime.

    Updates use SET XX so a key that expired between the read and the write is
    never resurrected; the whole record is replaced in that single command.
    """

    def __init__(
        self,
        client: aioredis.Redis,
        ttl_seconds: int = DEFAULT_SESSION_TTL,
        clock: Clock = utc_now,
    ) -> None:
        super().__init__(ttl_seconds, clock)
        self._redis = client

    @staticmethod
    def _ttl_seconds(record: SessionRecord, now: datetime) -> int:
        return max(1, math.ceil((record.expires_at - now).total_seconds()))

    async def _load(self, session_id: str, now: datetime) -> SessionRecord:
        raw = await self._redis.get(make_session_key(session_id))
        if raw is None:
            raise SessionNotFoundError(session_id)
        record = SessionRecord.model_validate_json(raw)
        if record.is_expired(now):
            raise SessionNotFoundError(session_id)
        return record

    async def _replace(self, record: SessionRecord, now: datetime) -> SessionRecord:
        stored = await self._redis.set(
            make_session_key(record.session_id),
            record.model_dump_json(),
            ex=self._ttl_seconds(record, now),
            xx=True,
        )
        if not stored:
            raise SessionNotFoundError(record.session_id)
        return record

    async def create(self, payload, state=SubmissionState.draft) -> SessionRecord:
        now = self._now()
        while True:
            record = SessionRecord(
                session_id=new_session_id(),
                payload=dict(payload),
                state=state,
                created_at=now,
                updated_at=now,
                expires_at=now + self.ttl,
            )
            stored = await self._redis.set(
                make_session_key(record.session_id),
                record.model_dump_json(),
                ex=self._ttl_seconds(record, now),
                nx=True,
            )
            if stored:
                break
        logger.info("Session created session_id=%s", record.session_id)
        return record

    async def get(self, session_id: str) -> SessionRecord:
        return await self._load(session_id, self._now())

    async def update(self, session_id, payload, state=SubmissionState.draft) -> SessionRecord:
        now = self._now()
        current = await self._load(session_id, now)
        record = current.model_copy(update={
            "payload": dict(payload),
            "state": state,
            "updated_at": now,
            "expires_at": now + self.ttl,
        })
        await self._replace(record, now)
        logger.debug("Session updated session_id=%s state=%s", session_id, state.value)
        return record

    async def delete(self, session_id: str) -> None:
        raw = await self._redis.getdel(make_session_key(session_id))
        if raw is None:
            raise SessionNotFoundError(session_id)
        if SessionRecord.model_validate_json(raw).is_expired(self._now()):
            raise SessionNotFoundError(session_id)
        logger.info("Session deleted session_id=%s", session_id)

    async def sweep_expired(self) -> int:
        # Keys carry their own EX; Redis reclaims them.
        return 0

    async def extend(self, session_id: str, seconds: Optional[int] = None) -> SessionRecord:
        lifetime = self._lifetime(seconds)
        now = self._now()
        current = await self._load(session_id, now)
        record = current.model_copy(update={"expires_at": now + lifetime})
        await self._replace(record, now)
        logger.info("Session extended session_id=%s seconds=%d", session_id, lifetime.total_seconds())
        return record


# ---------------------------------------------------------------------------
# PostgreSQL backend
# ---------------------------------------------------------------------------

class DatabaseSessionStore(SessionStore):
    """
    Sessions in the intake_sessions table.

    Update is a single `UPDATE ... WHERE id = :id AND expires_at > :now RETURNING`,
    so liveness check, payload replacement and expiry refresh happen in one
    statement and concurrent writers resolve to last-write-wins.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ttl_seconds: int = DEFAULT_SESSION_TTL,
        clock: Clock = utc_now,
    ) -> None:
        super().__init__(ttl_seconds, clock)
        self._session_factory = session_factory

    @staticmethod
    def _to_record(orm: IntakeSessionORM) -> SessionRecord:
        return SessionRecord(
            session_id=orm.id,
            payload=dict(orm.payload or {}),
            state=SubmissionState(orm.state),
            created_at=orm.created_at,
            updated_at=orm.updated_at,
            expires_at=orm.expires_at,
        )

    async def create(self, payload, state=SubmissionState.draft) -> SessionRecord:
        now = self._now()
        orm = IntakeSessionORM(
            id=new_session_id(),
            payload=dict(payload),
            state=state.value,
            created_at=now,
            updated_at=now,
            expires_at=now + self.ttl,
        )
        async with self._session_factory() as db:
            db.add(orm)
            await db.commit()
        logger.info("Session created session_id=%s", orm.id)
        return self._to_record(orm)

    async def get(self, session_id: str) -> SessionRecord:
        now = self._now()
        async with self._session_factory() as db:
            result = await db.execute(
                select(IntakeSessionORM).where(
                    IntakeSessionORM.id == session_id,
                    IntakeSessionORM.expires_at > now,
                )
            )
            orm = result.scalar_one_or_none()
        if orm is None:
            raise SessionNotFoundError(session_id)
        return self._to_record(orm)

    async def _conditional_update(self, session_id: str, now: datetime, **values: Any) -> SessionRecord:
        stmt = (
            update(IntakeSessionORM)
            .where(IntakeSessionORM.id == session_id, IntakeSessionORM.expires_at > now)
            .values(**values)
            .returning(IntakeSessionORM)
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as db:
            result = await db.execute(stmt)
            orm = result.scalar_one_or_none()
            await db.commit()
        if orm is None:
            raise SessionNotFoundError(session_id)
        return self._to_record(orm)

    async def update(self, session_id, payload, state=SubmissionState.draft) -> SessionRecord:
        now = self._now()
        record = await self._conditional_update(
            session_id,
            now,
            payload=dict(payload),
            state=state.value,
            updated_at=now,
            expires_at=now + self.ttl,
        )
        logger.debug("Session updated session_id=%s state=%s", session_id, state.value)
        return record

    async def delete(self, session_id: str) -> None:
        now = self._now()
        async with self._session_factory() as db:
            result = await db.execute(
                delete(IntakeSessionORM)
                .where(IntakeSessionORM.id == session_id)
                .returning(IntakeSessionORM.expires_at)
            )
            expires_at = result.scalar_one_or_none()
            await db.commit()
        if expires_at is None or now >= expires_at:
            raise SessionNotFoundError(session_id)
        logger.info("Session deleted session_id=%s", session_id)

    async def sweep_expired(self) -> int:
        now = self._now()
        async with self._session_factory() as db:
            result = await db.execute(
                delete(IntakeSessionORM).where(IntakeSessionORM.expires_at <= now)
            )
            await db.commit()
        count = result.rowcount or 0
        if count:
            logger.info("Swept %d expired session(s)", count)
        return count

    async def extend(self, session_id: str, seconds: Optional[int] = None) -> SessionRecord:
        lifetime = self._lifetime(seconds)
        now = self._now()
        record = await self._conditional_update(session_id, now, expires_at=now + lifetime)
        logger.info("Session extended session_id=%s seconds=%d", session_id, lifetime.total_seconds())
        return record
