"""
database.py — SQLAlchemy 2.0 async engine and session factory.

This module owns ALL database connection infrastructure.
Nothing else in the codebase creates engines or sessions directly.

Usage in stores that manage their own transaction scope:
    from intake.database import AsyncSessionLocal
    async with AsyncSessionLocal() as session: ...
"""
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from intake.config import settings


class Base(DeclarativeBase):
    """
    SQLAlchemy declarative base for every ORM model in intake/models/.
    Defined here (not in models/) so alembic/env.py can import it without cycles.
    """
    pass


def make_engine(url: str) -> AsyncEngine:
    return create_async_engine(
        url,
        echo=settings.debug,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,   # discard stale connections before use
    )


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# ---------------------------------------------------------------------------
# Process-wide engine and session factory
# ---------------------------------------------------------------------------
async_engine = make_engine(settings.database_url)
AsyncSessionLocal = make_session_factory(async_engine)
