"""create_registrations

Revision ID: 002_create_registrations
Revises: 001_create_intake_sessions
Create Date: 2026-10-19 09:30:00.000000 UTC

Creates:
  - registrations          (finalized submissions, unique submission_key)
  - registration_options   (selected option codes, FK → registrations.id)
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "002_create_registrations"
down_revision: Union[str, None] = "001_create_intake_sessions"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "registrations",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("submission_key", sa.String(length=64), nullable=False, comment="Session id the registration was finalized from (idempotency key)"),
        sa.Column("last_name", sa.String(length=15), nullable=False),
        sa.Column("first_name", sa.String(length=15), nullable=False),
        sa.Column("last_name_kana", sa.String(length=15), nullable=False),
        sa.Column("first_name_kana", sa.String(length=15), nullable=False),
        sa.Column("phone1", sa.String(length=5), nullable=False),
        sa.Column("phone2", sa.String(length=4), nullable=False),
        sa.Column("phone3", sa.String(length=4), nullable=False),
        sa.Column("postal_code1", sa.String(length=3), nullable=False),
        sa.Column("postal_code2", sa.String(length=4), nullable=False),
        sa.Column("prefecture", sa.String(length=10), nullable=False),
        sa.Column("city", sa.String(length=50), nullable=False),
        sa.Column("town", sa.String(length=50), nullable=False, server_default=""),
        sa.Column("chome", sa.String(length=10), nullable=False, server_default=""),
        sa.Column("banchi", sa.String(length=10), nullable=False),
        sa.Column("go", sa.String(length=10), nullable=False, server_default=""),
        sa.Column("building", sa.String(length=100), nullable=False, server_default=""),
        sa.Column("room", sa.String(length=20), nullable=False, server_default=""),
        sa.Column("email", sa.String(length=256), nullable=False),
        sa.Column("plan_type", sa.String(length=1), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_registrations_submission_key"), "registrations", ["submission_key"], unique=True)

    op.create_table(
        "registration_options",
        sa.Column("registration_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("option_code", sa.String(length=8), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.ForeignKeyConstraint(["registration_id"], ["registrations.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("registration_id", "option_code"),
    )


def downgrade() -> None:
    op.drop_table("registration_options")
    op.drop_index(op.f("ix_registrations_submission_key"), table_name="registrations")
    op.drop_table("registrations")
