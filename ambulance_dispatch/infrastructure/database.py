"""
Async SQLAlchemy engine and session factory.

Uses ``asyncpg`` as the PostgreSQL driver for non-blocking I/O.  Every
dispatch attempt and every commit opens its own short-lived session from
the factory, so concurrent dispatches never share a transaction.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from ambulance_dispatch.config import settings

SessionFactory = async_sessionmaker[AsyncSession]


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


def make_session_factory(engine: AsyncEngine) -> SessionFactory:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def make_engine(url: str, **kwargs: Any) -> AsyncEngine:
    return create_async_engine(url, echo=False, **kwargs)


engine = make_engine(settings.database_url, pool_size=20, max_overflow=10)

async_session_factory = make_session_factory(engine)
