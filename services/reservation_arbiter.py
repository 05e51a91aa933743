"""
Reservation Arbiter.

Validates a requested slot against the calendar, schedule and rest periods,
then commits the reservation only if capacity still allows it at commit time.
The overlap re-count and the insert share one transaction guarded by the
ledger's window lock.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.logging import LogContext
from core.utils_datetime import (
    ensure_utc,
    get_current_datetime,
    minutes_since_midnight,
    to_business_local,
)
from db.models_sqlalchemy import BookingCalendar, Reservation, Service
from domain.enums import AuditAction, DayOfWeek, ReservationStatus
from domain.exceptions import (
    ConflictError,
    NotFoundError,
    OutsideBusinessHours,
    RestPeriodBlocked,
    ServiceUnavailable,
    ValidationError,
)
from domain.models import ClientInfo
from integrations.google_calendar import CalendarSync
from services.audit_log import record_audit
from services.booking_ledger import BookingLedger
from services.directory import resolve_or_create_client, resolve_staff
from services.schedule_store import ScheduleStore


logger = logging.getLogger(__name__)


async def get_active_calendar(session: AsyncSession, slug: str) -> BookingCalendar:
    """
    Load a booking calendar by slug.

    Raises:
        NotFoundError: If the calendar does not exist or is inactive
    """
    result = await session.execute(select(BookingCalendar).where(BookingCalendar.slug == slug))
    calendar = result.scalar_one_or_none()
    if calendar is None or not calendar.is_active:
        raise NotFoundError("Booking calendar not found or inactive", {"slug": slug})
    return calendar


def get_enabled_service(calendar: BookingCalendar, service_id: str) -> Service:
    """
    Service enabled on a calendar.

    Raises:
        ServiceUnavailable: If the service is not offered through the calendar
    """
    service = calendar.enabled_service(service_id)
    if service is None:
        raise ServiceUnavailable(
            "Service not available in this calendar",
            {"slug": calendar.slug, "service_id": service_id},
        )
    return service


class ReservationArbiter:
    """Commits reservations without exceeding the concurrency limit."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        calendar_sync: Optional[CalendarSync] = None,
    ):
        """
        Initialize ReservationArbiter.

        Args:
            session_factory: Factory for the per-request sessions
            calendar_sync: Post-commit calendar sync, skipped when None
        """
        self.session_factory = session_factory
        self.calendar_sync = calendar_sync

    async def reserve(
        self,
        calendar_slug: str,
        service_id: str,
        requested_start: datetime,
        client_info: ClientInfo,
        staff_id: Optional[str] = None,
        utc_offset_minutes: Optional[int] = None,
    ) -> Reservation:
        """
        Create a reservation if the slot is valid and capacity remains.

        Args:
            calendar_slug: Public booking calendar slug
            service_id: Service to book
            requested_start: Start instant, timezone-aware
            client_info: Client details
            staff_id: Explicit staff member, first active one when omitted
            utc_offset_minutes: Client offset used to read the local day,
                business timezone when omitted

        Returns:
            The committed reservation

        Raises:
            ValidationError: Malformed input
            NotFoundError: Calendar or staff not found
            ServiceUnavailable: Service not enabled on the calendar
            OutsideBusinessHours: Closed day or interval outside open hours
            RestPeriodBlocked: Interval intersects a rest period
            ConflictError: Capacity exhausted at commit time
        """
        if requested_start.tzinfo is None:
            raise ValidationError("requested_start must be timezone-aware")
        requested_start = ensure_utc(requested_start)

        with LogContext(logger, calendar=calendar_slug, service_id=service_id) as ctx:
            async with self.session_factory() as session:
                async with session.begin():
                    calendar = await get_active_calendar(session, calendar_slug)
                    service = get_enabled_service(calendar, service_id)

                    requested_end = requested_start + timedelta(minutes=service.duration_minutes)
                    ctx.bind(start=requested_start.isoformat(), end=requested_end.isoformat())

                    await self._check_schedule(
                        session, requested_start, service.duration_minutes, utc_offset_minutes
                    )
                    staff = await resolve_staff(session, staff_id)

                    ledger = BookingLedger(session)
                    await ledger.lock_window(requested_start, requested_end)

                    overlapping = await ledger.count_overlapping(requested_start, requested_end)
                    limit = calendar.effective_concurrency_limit
                    if overlapping >= limit:
                        ctx.log(
                            "warning",
                            "Slot full at commit time",
                            overlapping=overlapping,
                            limit=limit,
                        )
                        raise ConflictError(details={"overlapping": overlapping, "limit": limit})

                    client = await resolve_or_create_client(session, client_info)
                    status = (
                        ReservationStatus.PENDING if calendar.requires_payment
                        else ReservationStatus.CONFIRMED
                    )

                    reservation = await ledger.add(Reservation(
                        start_time=requested_start,
                        end_time=requested_end,
                        status=status.value,
                        client_id=client.id,
                        staff_id=staff.id,
                        service_id=service.id,
                        calendar_id=calendar.id,
                        price=service.price,
                        notes=client_info.notes or f"Booked via {calendar.name}",
                    ))
                    await record_audit(
                        session,
                        AuditAction.RESERVATION_CREATED,
                        reservation.id,
                        {
                            "status": status.value,
                            "calendar": calendar.slug,
                            "service_id": service.id,
                            "start_time": requested_start.isoformat(),
                            "overlapping": overlapping,
                            "limit": limit,
                        },
                    )

                # Relationships for the response; the row is committed at this point
                await session.refresh(reservation, ["client", "service", "calendar"])

            ctx.log("info", "Reservation created", reservation_id=reservation.id, status=status.value)

        if self.calendar_sync is not None:
            await self.calendar_sync.sync_reservation(reservation.id)

        return reservation

    async def _check_schedule(
        self,
        session: AsyncSession,
        requested_start: datetime,
        duration_minutes: int,
        utc_offset_minutes: Optional[int],
    ) -> None:
        """Reject intervals outside open hours or inside a rest period."""
        local_start = to_business_local(requested_start, utc_offset_minutes)
        day_of_week = DayOfWeek.from_date(local_start.date())

        store = ScheduleStore(session)
        day_schedule = await store.get_day_schedule(day_of_week)

        if not day_schedule.has_hours:
            raise OutsideBusinessHours(
                "Business is closed on this day",
                {"day_of_week": day_of_week.value},
            )
        if not day_schedule.contains(local_start.time(), duration_minutes):
            raise OutsideBusinessHours(
                "Requested time is outside business hours",
                {
                    "day_of_week": day_of_week.value,
                    "open_time": day_schedule.open_time.strftime("%H:%M"),
                    "close_time": day_schedule.close_time.strftime("%H:%M"),
                },
            )

        start_minute = minutes_since_midnight(local_start.time())
        end_minute = start_minute + duration_minutes
        for rest in await store.get_rest_periods(day_of_week):
            if rest.blocks(start_minute, end_minute):
                raise RestPeriodBlocked(
                    "Requested time falls within a rest period",
                    {
                        "rest_start": rest.start_time.strftime("%H:%M"),
                        "rest_end": rest.end_time.strftime("%H:%M"),
                    },
                )

    async def cancel(self, reservation_id: str, reason: Optional[str] = None) -> Reservation:
        """
        Cancel a pending or confirmed reservation.

        Args:
            reservation_id: Reservation ID
            reason: Cancellation reason, kept in the audit log

        Returns:
            The cancelled reservation

        Raises:
            NotFoundError: If the reservation does not exist
            ValidationError: If it is already cancelled
        """
        with LogContext(logger, reservation_id=reservation_id) as ctx:
            async with self.session_factory() as session:
                async with session.begin():
                    ledger = BookingLedger(session)
                    reservation = await ledger.get(reservation_id, for_update=True)
                    if reservation is None:
                        raise NotFoundError(f"Reservation {reservation_id} not found")

                    previous = reservation.status_enum
                    cancelled_at = get_current_datetime()
                    changed = await ledger.transition_status(
                        reservation_id,
                        new_status=ReservationStatus.CANCELLED,
                        cancelled_at=cancelled_at,
                    )
                    if not changed:
                        raise ValidationError(
                            "Reservation is already cancelled",
                            {"reservation_id": reservation_id},
                        )

                    await record_audit(
                        session,
                        AuditAction.RESERVATION_CANCELLED,
                        reservation_id,
                        {"previous_status": previous.value, "reason": reason},
                    )

                await session.refresh(reservation, ["status", "cancelled_at", "updated_at"])

            ctx.log("info", "Reservation cancelled", previous_status=previous.value)

        if self.calendar_sync is not None:
            await self.calendar_sync.remove_reservation(reservation)

        return reservation
