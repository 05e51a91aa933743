"""
Booking Finalizer.

Turns a paid booking intent into a confirmed reservation. Safe to call any
number of times for the same reservation ID: duplicate or concurrent
deliveries of the payment callback produce exactly one reservation.
"""
import logging
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.logging import LogContext
from db.models_sqlalchemy import BookingCalendar, Reservation, Service
from domain.enums import AuditAction, ReservationStatus
from domain.exceptions import NotFoundError
from domain.models import BookingIntentData
from integrations.google_calendar import CalendarSync
from services.audit_log import record_audit
from services.booking_ledger import BookingLedger
from services.directory import resolve_or_create_client, resolve_staff


logger = logging.getLogger(__name__)

# A second attempt always finds the row the concurrent writer committed
MAX_ATTEMPTS = 2


class BookingFinalizer:
    """Confirms reservations after payment."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        calendar_sync: Optional[CalendarSync] = None,
    ):
        self.session_factory = session_factory
        self.calendar_sync = calendar_sync

    async def finalize(
        self,
        reservation_id: str,
        booking_intent_data: Optional[BookingIntentData] = None,
    ) -> Reservation:
        """
        Confirm a reservation, creating it from the intent when missing.

        Args:
            reservation_id: ID chosen when the payment was initiated
            booking_intent_data: Booking details carried through the payment

        Returns:
            The reservation in its final state

        Raises:
            NotFoundError: Reservation missing and no intent data to create it,
                or the intent references an unknown service or staff member
        """
        with LogContext(logger, reservation_id=reservation_id) as ctx:
            for attempt in range(1, MAX_ATTEMPTS + 1):
                try:
                    reservation, changed = await self._finalize_once(
                        reservation_id, booking_intent_data, ctx
                    )
                    break
                except IntegrityError:
                    if attempt == MAX_ATTEMPTS:
                        raise
                    ctx.log("info", "Reservation inserted concurrently, re-reading", attempt=attempt)

            ctx.log("info", "Reservation finalized", status=reservation.status, changed=changed)

        if changed and self.calendar_sync is not None:
            await self.calendar_sync.sync_reservation(reservation.id)

        return reservation

    async def _finalize_once(
        self,
        reservation_id: str,
        data: Optional[BookingIntentData],
        ctx: LogContext,
    ) -> Tuple[Reservation, bool]:
        async with self.session_factory() as session:
            async with session.begin():
                ledger = BookingLedger(session)
                reservation = await ledger.get(reservation_id, for_update=True)

                if reservation is None:
                    if data is None:
                        raise NotFoundError(
                            f"Reservation {reservation_id} not found and no booking data supplied"
                        )

                    await ledger.lock_window(data.start_time, data.end_time)
                    # Another delivery may have inserted it while we waited
                    reservation = await ledger.get(reservation_id)

                if reservation is None:
                    reservation = await self._create_confirmed(session, ledger, reservation_id, data, ctx)
                    changed = True
                else:
                    changed = await self._confirm_existing(session, ledger, reservation, ctx)

            await session.refresh(reservation, ["client", "service", "calendar"])
            return reservation, changed

    async def _confirm_existing(
        self,
        session: AsyncSession,
        ledger: BookingLedger,
        reservation: Reservation,
        ctx: LogContext,
    ) -> bool:
        """pending -> confirmed. Confirmed and cancelled reservations are left alone."""
        if not reservation.status_enum.can_transition_to(ReservationStatus.CONFIRMED):
            ctx.log("info", "Reservation already final", status=reservation.status)
            return False

        changed = await ledger.transition_status(
            reservation.id,
            new_status=ReservationStatus.CONFIRMED,
        )
        if changed:
            await record_audit(
                session,
                AuditAction.RESERVATION_CONFIRMED,
                reservation.id,
                {"previous_status": ReservationStatus.PENDING.value},
            )
        await session.refresh(reservation)
        return changed

    async def _create_confirmed(
        self,
        session: AsyncSession,
        ledger: BookingLedger,
        reservation_id: str,
        data: BookingIntentData,
        ctx: LogContext,
    ) -> Reservation:
        """Insert a confirmed reservation for a paid intent that was never recorded."""
        service = await session.get(Service, data.service_id)
        if service is None:
            raise NotFoundError(f"Service {data.service_id} not found")

        staff = await resolve_staff(session, data.staff_id)

        calendar = None
        if data.calendar_slug:
            result = await session.execute(
                select(BookingCalendar).where(BookingCalendar.slug == data.calendar_slug)
            )
            calendar = result.scalar_one_or_none()
            if calendar is None:
                ctx.log("warning", "Booking calendar of paid intent not found", slug=data.calendar_slug)

        # Payment is captured, so capacity is reported rather than enforced
        overlapping = await ledger.count_overlapping(data.start_time, data.end_time)
        limit = calendar.effective_concurrency_limit if calendar is not None else 1
        overbooked = overlapping >= limit
        if overbooked:
            ctx.log(
                "warning",
                "Paid booking exceeds concurrency limit",
                overlapping=overlapping,
                limit=limit,
            )

        client = await resolve_or_create_client(session, data.client_info())
        calendar_name = data.calendar_name or (calendar.name if calendar is not None else "booking page")

        reservation = await ledger.add(Reservation(
            id=reservation_id,
            start_time=data.start_time,
            end_time=data.end_time,
            status=ReservationStatus.CONFIRMED.value,
            client_id=client.id,
            staff_id=staff.id,
            service_id=service.id,
            calendar_id=calendar.id if calendar is not None else None,
            price=data.total if data.total is not None else service.price,
            notes=data.notes or f"Paid - Booked via {calendar_name}",
            google_calendar_id=data.google_calendar_id,
        ))
        await record_audit(
            session,
            AuditAction.RESERVATION_CREATED,
            reservation.id,
            {
                "status": ReservationStatus.CONFIRMED.value,
                "source": "finalize",
                "start_time": data.start_time.isoformat(),
                "overlapping": overlapping,
                "limit": limit,
                "overbooked": overbooked,
            },
        )
        return reservation
