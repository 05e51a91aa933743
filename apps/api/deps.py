"""FastAPI dependencies: sessions and booking services."""

from typing import AsyncGenerator, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.settings import settings
from db.session import AsyncSessionLocal
from integrations.google_calendar import CalendarSync
from services.availability_service import AvailabilityService
from services.booking_finalizer import BookingFinalizer
from services.reservation_arbiter import ReservationArbiter


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory; overridden in tests."""
    return AsyncSessionLocal


async def get_db(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> AsyncGenerator[AsyncSession, None]:
    """Read-only session for query endpoints."""
    async with session_factory() as session:
        yield session


def get_calendar_sync(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> Optional[CalendarSync]:
    if not settings.google_calendar_enabled:
        return None
    return CalendarSync(session_factory)


def get_arbiter(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    calendar_sync: Optional[CalendarSync] = Depends(get_calendar_sync),
) -> ReservationArbiter:
    return ReservationArbiter(session_factory, calendar_sync)


def get_finalizer(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    calendar_sync: Optional[CalendarSync] = Depends(get_calendar_sync),
) -> BookingFinalizer:
    return BookingFinalizer(session_factory, calendar_sync)


def get_availability_service(db: AsyncSession = Depends(get_db)) -> AvailabilityService:
    return AvailabilityService(db)
