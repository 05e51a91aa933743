"""Database layer for the salon booking engine."""

from .base import Base, TimestampMixin, UTCDateTime
from .models_sqlalchemy import (
    Staff,
    Client,
    Service,
    BookingCalendar,
    BookingCalendarService,
    Schedule,
    RestTime,
    Reservation,
    BookingWindowLock,
    AuditLog,
)
from .session import (
    engine,
    AsyncSessionLocal,
    create_session_factory,
    create_test_engine,
    init_db,
    close_db,
    DatabaseConfig,
)

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "UTCDateTime",
    # Models
    "Staff",
    "Client",
    "Service",
    "BookingCalendar",
    "BookingCalendarService",
    "Schedule",
    "RestTime",
    "Reservation",
    "BookingWindowLock",
    "AuditLog",
    # Session
    "engine",
    "AsyncSessionLocal",
    "create_session_factory",
    "create_test_engine",
    "init_db",
    "close_db",
    "DatabaseConfig",
]
