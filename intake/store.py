"""
store.py — Data access facade for finalized registrations.

Design principles:
  - All functions are async and accept an AsyncSession parameter
  - ORM-only queries, no raw SQL
  - Logs only registration_id / submission_key — never names, emails or addresses
  - Returns domain pydantic objects (not ORM instances)
  - flush() only; the caller owns the transaction
"""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from intake.models.registration import RegistrationOptionORM, RegistrationORM
from intake.registration.schemas import DraftSubmission, Registration

logger = logging.getLogger(__name__)


def _to_domain(orm: RegistrationORM) -> Registration:
    flat = {
        "last_name": orm.last_name,
        "first_name": orm.first_name,
        "last_name_kana": orm.last_name_kana,
        "first_name_kana": orm.first_name_kana,
        "phone1": orm.phone1,
        "phone2": orm.phone2,
        "phone3": orm.phone3,
        "postal_code1": orm.postal_code1,
        "postal_code2": orm.postal_code2,
        "prefecture": orm.prefecture,
        "city": orm.city,
        "town": orm.town,
        "chome": orm.chome,
        "banchi": orm.banchi,
        "go": orm.go,
        "building": orm.building,
        "room": orm.room,
        "email": orm.email,
        "email_confirmation": orm.email,
        "plan_type": orm.plan_type,
        "option_types": [o.option_code for o in orm.options],
    }
    return Registration(
        registration_id=orm.id,
        submission_key=orm.submission_key,
        submission=DraftSubmission.from_flat(flat),
        created_at=orm.created_at,
    )


async def save_registration(
    db: AsyncSession,
    submission_key: str,
    draft: DraftSubmission,
) -> Registration:
    """
    Persist a finalized submission with its option rows.

    Values are stored trimmed. Raises sqlalchemy.exc.IntegrityError if a
    registration with the same submission_key already exists.
    """
    name, phone, postal, address = draft.name, draft.phone, draft.postal_code, draft.address
    orm = RegistrationORM(
        submission_key=submission_key,
        last_name=name.last_name.strip(),
        first_name=name.first_name.strip(),
        last_name_kana=name.last_name_kana.strip(),
        first_name_kana=name.first_name_kana.strip(),
        phone1=phone.area.strip(),
        phone2=phone.exchange.strip(),
        phone3=phone.subscriber.strip(),
        postal_code1=postal.first.strip(),
        postal_code2=postal.second.strip(),
        prefecture=address.prefecture.strip(),
        city=address.city.strip(),
        town=address.town.strip(),
        chome=address.chome.strip(),
        banchi=address.banchi.strip(),
        go=address.go.strip(),
        building=address.building.strip(),
        room=address.room.strip(),
        email=draft.email.strip(),
        plan_type=draft.plan.plan_type.strip(),
        options=[
            RegistrationOptionORM(option_code=code, position=i)
            for i, code in enumerate(dict.fromkeys(draft.plan.option_types))
        ],
    )
    db.add(orm)
    await db.flush()
    logger.info(
        "Saved registration registration_id=%s submission_key=%s options=%d",
        orm.id,
        submission_key,
        len(orm.options),
    )
    return _to_domain(orm)


async def get_registration(
    db: AsyncSession,
    registration_id: str,
) -> Optional[Registration]:
    result = await db.execute(
        select(RegistrationORM).where(RegistrationORM.id == registration_id)
    )
    orm = result.scalar_one_or_none()
    if orm is None:
        return None
    return _to_domain(orm)


async def get_registration_by_submission_key(
    db: AsyncSession,
    submission_key: str,
) -> Optional[Registration]:
    """Returns None if nothing was finalized from this session yet."""
    result = await db.execute(
        select(RegistrationORM).where(RegistrationORM.submission_key == submission_key)
    )
    orm = result.scalar_one_or_none()
    if orm is None:
        return None
    return _to_domain(orm)
