"""FastAPI dependency injection helpers."""

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from ambulance_dispatch.infrastructure.committer import AssignmentCommitter
from ambulance_dispatch.infrastructure.database import SessionFactory
from ambulance_dispatch.workers.dispatcher import Dispatcher
from ambulance_dispatch.workers.intake import BookingIntake


def get_session_factory(request: Request) -> SessionFactory:
    return request.app.state.session_factory


async def get_db(request: Request) -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with get_session_factory(request)() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher


def get_committer(request: Request) -> AssignmentCommitter:
    return request.app.state.dispatcher.committer


def get_intake(request: Request) -> BookingIntake:
    return request.app.state.intake
