"""SQLAlchemy models for the salon booking engine database tables."""

from datetime import datetime, time, timezone
from decimal import Decimal
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UTCDateTime
from domain.enums import ReservationStatus


def generate_id() -> str:
    """Externally visible identifier for new rows."""
    return str(uuid4())


class Staff(Base, TimestampMixin):
    """Staff member who can be assigned to appointments."""

    __tablename__ = "staff"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    def __repr__(self) -> str:
        return f"<Staff(id={self.id}, name='{self.name}', active={self.is_active})>"


class Client(Base, TimestampMixin):
    """Client record, keyed by email."""

    __tablename__ = "clients"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    phone: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<Client(id={self.id}, name='{self.name}', email='{self.email}')>"


class Service(Base, TimestampMixin):
    """Bookable service."""

    __tablename__ = "services"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="positive_duration"),
    )

    def __repr__(self) -> str:
        return (
            f"<Service(id={self.id}, name='{self.name}', "
            f"duration={self.duration_minutes}, price={self.price})>"
        )


class BookingCalendarService(Base):
    """Service offered through a booking calendar."""

    __tablename__ = "booking_calendar_services"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    calendar_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("booking_calendars.id", ondelete="CASCADE"), nullable=False
    )
    service_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("services.id", ondelete="CASCADE"), nullable=False
    )
    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    service: Mapped[Service] = relationship(lazy="selectin")

    __table_args__ = (
        UniqueConstraint("calendar_id", "service_id", name="uq_booking_calendar_services_calendar_service"),
    )


class BookingCalendar(Base, TimestampMixin):
    """Public booking surface."""

    __tablename__ = "booking_calendars"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    concurrency_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    requires_payment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    google_calendar_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    services: Mapped[List[BookingCalendarService]] = relationship(
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    @property
    def effective_concurrency_limit(self) -> int:
        """Concurrency limit, defaulting to 1 when unset or non-positive."""
        if not self.concurrency_limit or self.concurrency_limit < 1:
            return 1
        return self.concurrency_limit

    def enabled_service(self, service_id: str) -> Optional[Service]:
        """Service enabled on this calendar, or None."""
        for link in self.services:
            if link.service_id == service_id and link.is_enabled:
                return link.service
        return None

    def __repr__(self) -> str:
        return (
            f"<BookingCalendar(id={self.id}, slug='{self.slug}', "
            f"limit={self.concurrency_limit}, active={self.is_active})>"
        )


class Schedule(Base, TimestampMixin):
    """Weekly open hours, one row per day of week."""

    __tablename__ = "schedules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    day_of_week: Mapped[str] = mapped_column(String(10), nullable=False, unique=True)
    is_open: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    open_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    close_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<Schedule(day='{self.day_of_week}', open={self.is_open}, "
            f"{self.open_time}-{self.close_time})>"
        )


class RestTime(Base, TimestampMixin):
    """Recurring rest period on a day of week."""

    __tablename__ = "rest_times"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    day_of_week: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)

    def __repr__(self) -> str:
        return f"<RestTime(day='{self.day_of_week}', {self.start_time}-{self.end_time})>"


class Reservation(Base, TimestampMixin):
    """Appointment. Only its status changes after creation."""

    __tablename__ = "reservations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_id)
    start_time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    end_time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ReservationStatus.PENDING.value,
        index=True,
    )
    client_id: Mapped[str] = mapped_column(String(36), ForeignKey("clients.id"), nullable=False, index=True)
    staff_id: Mapped[str] = mapped_column(String(36), ForeignKey("staff.id"), nullable=False)
    service_id: Mapped[str] = mapped_column(String(36), ForeignKey("services.id"), nullable=False)
    calendar_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("booking_calendars.id"), nullable=True
    )
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    external_event_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    # Overrides the booking calendar's Google calendar for this reservation
    google_calendar_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    client: Mapped[Client] = relationship(lazy="selectin")
    service: Mapped[Service] = relationship(lazy="selectin")
    calendar: Mapped[Optional[BookingCalendar]] = relationship(lazy="selectin")

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="start_before_end"),
        Index("ix_reservations_status_start_end", "status", "start_time", "end_time"),
    )

    @property
    def status_enum(self) -> ReservationStatus:
        return ReservationStatus(self.status)

    @property
    def duration_minutes(self) -> int:
        return round((self.end_time - self.start_time).total_seconds() / 60)

    def __repr__(self) -> str:
        return (
            f"<Reservation(id={self.id}, start={self.start_time}, "
            f"end={self.end_time}, status='{self.status}')>"
        )


class BookingWindowLock(Base):
    """
    One row per 30-minute UTC bucket.

    Writers bump ``version`` on every bucket their interval touches, in
    ascending order, before re-counting overlaps. Overlapping intervals share
    a bucket, so their transactions serialize on that row.
    """

    __tablename__ = "booking_window_locks"

    bucket_start: Mapped[datetime] = mapped_column(UTCDateTime(), primary_key=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<BookingWindowLock(bucket={self.bucket_start}, version={self.version})>"


class AuditLog(Base):
    """Audit log table for tracking reservation state changes."""

    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    entity_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    details: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )

    __table_args__ = (
        Index("ix_audit_log_entity", "entity_type", "entity_id"),
        Index("ix_audit_log_action_created", "action", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, action='{self.action}', "
            f"entity_type='{self.entity_type}', entity_id='{self.entity_id}')>"
        )
