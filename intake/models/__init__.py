"""
models/__init__.py — imports all ORM models so Alembic's env.py
sees them via Base.metadata.
"""
from intake.models.session import IntakeSessionORM
from intake.models.registration import RegistrationOptionORM, RegistrationORM

__all__ = ["IntakeSessionORM", "RegistrationORM", "RegistrationOptionORM"]
