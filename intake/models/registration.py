"""
models/registration.py — SQLAlchemy ORM models for finalized registrations.

Tables:
  registrations          one row per finalized submission
  registration_options   selected option codes (one row per code)

submission_key is unique: it holds the id of the session the registration was
finalized from, so a replayed finalize resolves to the existing row instead of
creating a second one.
"""
import uuid
from datetime import datetime, timezone
from typing import List

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from intake.database import Base


class RegistrationORM(Base):
    __tablename__ = "registrations"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    submission_key: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        index=True,
        comment="Session id the registration was finalized from (idempotency key)",
    )
    last_name: Mapped[str] = mapped_column(String(15), nullable=False)
    first_name: Mapped[str] = mapped_column(String(15), nullable=False)
    last_name_kana: Mapped[str] = mapped_column(String(15), nullable=False)
    first_name_kana: Mapped[str] = mapped_column(String(15), nullable=False)
    phone1: Mapped[str] = mapped_column(String(5), nullable=False)
    phone2: Mapped[str] = mapped_column(String(4), nullable=False)
    phone3: Mapped[str] = mapped_column(String(4), nullable=False)
    postal_code1: Mapped[str] = mapped_column(String(3), nullable=False)
    postal_code2: Mapped[str] = mapped_column(String(4), nullable=False)
    prefecture: Mapped[str] = mapped_column(String(10), nullable=False)
    city: Mapped[str] = mapped_column(String(50), nullable=False)
    town: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    chome: Mapped[str] = mapped_column(String(10), nullable=False, default="")
    banchi: Mapped[str] = mapped_column(String(10), nullable=False)
    go: Mapped[str] = mapped_column(String(10), nullable=False, default="")
    building: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    room: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(256), nullable=False)
    plan_type: Mapped[str] = mapped_column(String(1), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    options: Mapped[List["RegistrationOptionORM"]] = relationship(
        back_populates="registration",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="RegistrationOptionORM.position",
    )


class RegistrationOptionORM(Base):
    __tablename__ = "registration_options"

    registration_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("registrations.id", ondelete="CASCADE"),
        primary_key=True,
    )
    option_code: Mapped[str] = mapped_column(String(8), primary_key=True)
    position: Mapped[int] = mapped_column(nullable=False, default=0)

    registration: Mapped[RegistrationORM] = relationship(back_populates="options")
