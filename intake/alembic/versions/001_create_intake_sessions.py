"""create_intake_sessions

Revision ID: 001_create_intake_sessions
Revises:
Create Date: 2026-10-19 09:00:00.000000 UTC

Creates intake_sessions (durable wizard drafts with sliding expiry).
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_create_intake_sessions"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "intake_sessions",
        sa.Column("id", sa.String(length=64), nullable=False, comment="Opaque session token"),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False, comment="Draft submission snapshot (flat field mapping)"),
        sa.Column("state", sa.String(length=32), nullable=False, server_default="draft"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False, comment="Last write time + session TTL"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_intake_sessions_expires_at"), "intake_sessions", ["expires_at"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_intake_sessions_expires_at"), table_name="intake_sessions")
    op.drop_table("intake_sessions")
