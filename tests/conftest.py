"""Pytest configuration and fixtures for salon booking engine tests."""
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import update

from db.models_sqlalchemy import (
    BookingCalendar,
    BookingCalendarService,
    Client,
    Reservation,
    RestTime,
    Schedule,
    Service,
    Staff,
)
from db.session import create_session_factory, create_test_engine, init_db
from domain.enums import DayOfWeek, ReservationStatus
from domain.models import ClientInfo
from services.booking_finalizer import BookingFinalizer
from services.reservation_arbiter import ReservationArbiter


# Monday; tests pass an explicit zero offset so local wall-clock equals UTC
TEST_DAY = date(2030, 1, 7)
UTC_OFFSET = 0


def at(hour: int, minute: int = 0, day: date = TEST_DAY) -> datetime:
    """UTC instant on the test day."""
    return datetime.combine(day, time(hour, minute), tzinfo=timezone.utc)


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path):
    """
    File-backed SQLite database per test.

    A file (not :memory:) so that concurrent sessions get separate
    connections to the same database.
    """
    engine = create_test_engine(f"sqlite+aiosqlite:///{tmp_path / 'booking.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory):
    """Create a database session for testing."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def seed(session_factory):
    """
    Seed a salon open Monday 09:00-12:00 and closed on Sunday.

    One staff member, three services (one disabled on the calendar) and
    three calendars: free, paid and inactive.
    """
    async with session_factory() as session:
        async with session.begin():
            staff = Staff(name="Ana Stylist", email="ana@salon.test")
            haircut = Service(name="Haircut", duration_minutes=60, price=Decimal("450.00"))
            trim = Service(name="Beard trim", duration_minutes=30, price=Decimal("150.00"))
            unlisted = Service(name="Hair color", duration_minutes=90, price=Decimal("900.00"))
            session.add_all([staff, haircut, trim, unlisted])
            await session.flush()

            calendar = BookingCalendar(slug="salon", name="Salon Centro", concurrency_limit=1)
            calendar.services = [
                BookingCalendarService(service_id=haircut.id, is_enabled=True),
                BookingCalendarService(service_id=trim.id, is_enabled=True),
                BookingCalendarService(service_id=unlisted.id, is_enabled=False),
            ]
            paid_calendar = BookingCalendar(
                slug="salon-paid",
                name="Salon Premium",
                concurrency_limit=1,
                requires_payment=True,
            )
            paid_calendar.services = [BookingCalendarService(service_id=haircut.id, is_enabled=True)]
            inactive_calendar = BookingCalendar(slug="old-salon", name="Old Salon", is_active=False)

            session.add_all([
                calendar,
                paid_calendar,
                inactive_calendar,
                Schedule(day_of_week=DayOfWeek.MONDAY.value, is_open=True,
                         open_time=time(9, 0), close_time=time(12, 0)),
                Schedule(day_of_week=DayOfWeek.SUNDAY.value, is_open=False),
            ])

    return SimpleNamespace(
        staff_id=staff.id,
        haircut_id=haircut.id,
        trim_id=trim.id,
        unlisted_id=unlisted.id,
        calendar_id=calendar.id,
        paid_calendar_id=paid_calendar.id,
    )


@pytest.fixture(scope="function")
def set_concurrency_limit(session_factory, seed):
    """Factory fixture to change the concurrency limit of the 'salon' calendar."""
    async def _set(limit):
        async with session_factory() as session:
            async with session.begin():
                await session.execute(
                    update(BookingCalendar)
                    .where(BookingCalendar.id == seed.calendar_id)
                    .values(concurrency_limit=limit)
                )
    return _set


@pytest.fixture(scope="function")
def add_rest_period(session_factory):
    """Factory fixture to add a Monday rest period."""
    async def _add(start: time, end: time, day_of_week: DayOfWeek = DayOfWeek.MONDAY):
        async with session_factory() as session:
            async with session.begin():
                session.add(RestTime(day_of_week=day_of_week.value, start_time=start, end_time=end))
    return _add


@pytest.fixture(scope="function")
def create_reservation(session_factory, seed):
    """Factory fixture to insert a reservation directly, bypassing the arbiter."""
    async def _create(start: datetime, minutes: int = 60,
                      status: ReservationStatus = ReservationStatus.CONFIRMED, **kwargs):
        async with session_factory() as session:
            async with session.begin():
                client = Client(
                    name="Existing Client",
                    email=f"existing-{uuid4().hex}@example.com",
                    phone="5550000000",
                )
                session.add(client)
                await session.flush()
                reservation = Reservation(
                    start_time=start,
                    end_time=start + timedelta(minutes=minutes),
                    status=status.value,
                    client_id=client.id,
                    staff_id=seed.staff_id,
                    service_id=seed.haircut_id,
                    calendar_id=seed.calendar_id,
                    **kwargs,
                )
                session.add(reservation)
        return reservation
    return _create


@pytest.fixture(scope="function")
def sample_client_info():
    """Provide sample client details for testing."""
    return ClientInfo(
        name="Maria Lopez",
        phone="+52 55 1234 5678",
        email="maria@example.com",
        notes="First visit",
    )


@pytest.fixture(scope="function")
def arbiter(session_factory, seed):
    return ReservationArbiter(session_factory)


@pytest.fixture(scope="function")
def finalizer(session_factory, seed):
    return BookingFinalizer(session_factory)
