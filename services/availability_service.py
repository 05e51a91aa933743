"""
Availability Service.

Read path of the public booking page: loads the calendar, schedule and the
day's reservations, and hands them to the slot calculator.
"""
import logging
from datetime import date
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from core.utils_datetime import local_day_window_utc, resolve_utc_offset
from domain.enums import DayOfWeek
from domain.models import AvailabilityResponse, AvailabilitySlot, ServiceSummary
from domain.scheduling import BookedInterval
from services.booking_ledger import BookingLedger
from services.reservation_arbiter import get_active_calendar, get_enabled_service
from services.schedule_store import ScheduleStore
from services.slot_calculator import calculate_slots


logger = logging.getLogger(__name__)


class AvailabilityService:
    """Slot listings for one calendar, service and day."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.schedule_store = ScheduleStore(session)
        self.ledger = BookingLedger(session)

    async def get_availability(
        self,
        slug: str,
        service_id: str,
        day: date,
        timezone_offset: Optional[int] = None,
    ) -> AvailabilityResponse:
        """
        Compute the slots of one local day.

        Args:
            slug: Booking calendar slug
            service_id: Service to book
            day: Local calendar day
            timezone_offset: Client offset, business timezone when omitted

        Returns:
            AvailabilityResponse with slots in chronological order

        Raises:
            NotFoundError: Calendar missing or inactive
            ServiceUnavailable: Service not enabled on the calendar
        """
        calendar = await get_active_calendar(self.session, slug)
        service = get_enabled_service(calendar, service_id)
        offset = resolve_utc_offset(day, timezone_offset)

        day_of_week = DayOfWeek.from_date(day)
        day_schedule = await self.schedule_store.get_day_schedule(day_of_week)
        summary = ServiceSummary(
            id=service.id,
            name=service.name,
            duration=service.duration_minutes,
            price=service.price,
        )

        if not day_schedule.has_hours:
            return AvailabilityResponse(
                date=day,
                day_of_week=day_of_week.value,
                is_open=False,
                slots=[],
                service=summary,
                message="Business is closed on this day",
            )

        rest_periods = await self.schedule_store.get_rest_periods(day_of_week)

        window_start, window_end = local_day_window_utc(day, offset)
        booked = [
            BookedInterval(start=r.start_time, end=r.end_time)
            for r in await self.ledger.find_overlapping(window_start, window_end)
        ]

        availability = calculate_slots(
            day=day,
            duration_minutes=service.duration_minutes,
            concurrency_limit=calendar.effective_concurrency_limit,
            day_schedule=day_schedule,
            rest_periods=rest_periods,
            existing_reservations=booked,
            utc_offset_minutes=offset,
        )

        logger.debug(
            f"Availability for {slug}/{service_id} on {day.isoformat()}: "
            f"{len(availability.available_slots)}/{len(availability.slots)} slots free"
        )

        return AvailabilityResponse(
            date=day,
            day_of_week=day_of_week.value,
            is_open=True,
            slots=[AvailabilitySlot(**slot.to_dict()) for slot in availability.slots],
            service=summary,
        )
