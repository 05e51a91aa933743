"""Read-only access to weekly open hours and rest periods."""
import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models_sqlalchemy import RestTime, Schedule
from domain.enums import DayOfWeek
from domain.scheduling import DaySchedule, RestPeriod


logger = logging.getLogger(__name__)


class ScheduleStore:
    """Schedule and rest-period reads for the booking engine."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_day_schedule(self, day_of_week: DayOfWeek) -> DaySchedule:
        """
        Get the open hours for a day of the week.

        A missing row means the business is closed all day.

        Args:
            day_of_week: Day to look up

        Returns:
            DaySchedule for that day
        """
        result = await self.session.execute(
            select(Schedule).where(Schedule.day_of_week == day_of_week.value)
        )
        row = result.scalar_one_or_none()

        if row is None:
            logger.debug(f"No schedule configured for {day_of_week.value}, treating as closed")
            return DaySchedule.closed(day_of_week)

        return DaySchedule(
            day_of_week=day_of_week,
            is_open=row.is_open,
            open_time=row.open_time,
            close_time=row.close_time,
        )

    async def get_rest_periods(self, day_of_week: DayOfWeek) -> List[RestPeriod]:
        """
        Get the rest periods configured for a day of the week.

        Args:
            day_of_week: Day to look up

        Returns:
            Rest periods ordered by start time
        """
        result = await self.session.execute(
            select(RestTime)
            .where(RestTime.day_of_week == day_of_week.value)
            .order_by(RestTime.start_time)
        )
        return [
            RestPeriod(
                day_of_week=day_of_week,
                start_time=row.start_time,
                end_time=row.end_time,
            )
            for row in result.scalars()
        ]
