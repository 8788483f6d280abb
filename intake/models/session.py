"""
models/session.py — SQLAlchemy ORM model for wizard session state.

Table: intake_sessions

Used by DatabaseSessionStore when sessions must outlive Redis. Expiry is
enforced at read time by comparing expires_at with the caller's clock; the
periodic sweep only reclaims rows.
"""
from datetime import datetime, timezone

from sqlalchemy import DateTime, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from intake.database import Base


class IntakeSessionORM(Base):
    """
    payload: flat Draft Submission mapping (whole-payload replacement on every write).
    state:   orchestrator state, 'draft' or 'pending_confirmation'.
    """
    __tablename__ = "intake_sessions"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="Opaque session token",
    )
    payload: Mapped[dict] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
        comment="Draft submission snapshot (flat field mapping)",
    )
    state: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default="draft",
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
        comment="Last write time + session TTL",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
