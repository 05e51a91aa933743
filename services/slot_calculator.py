"""
Slot calculator.

Pure projection of a day's bookable slots from the schedule, rest periods,
concurrency limit and existing reservations. No I/O, no clock reads: the
same inputs always give the same slot list.
"""
from datetime import date, time, timedelta
from typing import Iterable, List, Sequence

from core.utils_datetime import local_to_utc, minutes_since_midnight
from domain.enums import DayOfWeek
from domain.scheduling import (
    BookedInterval,
    DayAvailability,
    DaySchedule,
    RestPeriod,
    SlotCandidate,
)


# Slot starts are generated on a fixed grid; durations need not align
SLOT_STEP_MINUTES = 30


def normalize_concurrency_limit(limit) -> int:
    """Limits that are unset or non-positive behave as 1."""
    if not limit or limit < 1:
        return 1
    return int(limit)


def candidate_start_minutes(day_schedule: DaySchedule, duration_minutes: int) -> List[int]:
    """
    Slot start times, in minutes after local midnight.

    Starts step by SLOT_STEP_MINUTES from opening while the whole service
    still fits before closing.
    """
    if not day_schedule.has_hours or duration_minutes <= 0:
        return []

    open_min = minutes_since_midnight(day_schedule.open_time)
    close_min = minutes_since_midnight(day_schedule.close_time)
    return list(range(open_min, close_min - duration_minutes + 1, SLOT_STEP_MINUTES))


def count_overlapping(
    reservations: Iterable[BookedInterval],
    slot_start,
    slot_end,
) -> int:
    """Number of reservations intersecting [slot_start, slot_end)."""
    return sum(1 for booked in reservations if booked.overlaps(slot_start, slot_end))


def is_rest_blocked(rest_periods: Iterable[RestPeriod], start_minute: int, end_minute: int) -> bool:
    """Check whether a local minute range intersects any rest period."""
    return any(rest.blocks(start_minute, end_minute) for rest in rest_periods)


def calculate_slots(
    day: date,
    duration_minutes: int,
    concurrency_limit: int,
    day_schedule: DaySchedule,
    rest_periods: Sequence[RestPeriod],
    existing_reservations: Sequence[BookedInterval],
    utc_offset_minutes: int,
) -> DayAvailability:
    """
    Compute the candidate slots for one local day.

    Args:
        day: Local calendar day in the business timezone
        duration_minutes: Service duration
        concurrency_limit: Simultaneous reservations allowed per window
        day_schedule: Open hours for the day
        rest_periods: Rest periods for the day
        existing_reservations: Non-cancelled reservations around the day (UTC)
        utc_offset_minutes: Minutes to add to local wall-clock to get UTC

    Returns:
        DayAvailability with slots in chronological order
    """
    day_of_week = DayOfWeek.from_date(day)

    if not day_schedule.has_hours:
        return DayAvailability(day=day, day_of_week=day_of_week, is_open=False, slots=[])

    limit = normalize_concurrency_limit(concurrency_limit)
    day_rests = [rest for rest in rest_periods if rest.day_of_week == day_of_week]
    slots: List[SlotCandidate] = []

    for start_minute in candidate_start_minutes(day_schedule, duration_minutes):
        end_minute = start_minute + duration_minutes
        slot_time = time(start_minute // 60, start_minute % 60)

        slot_start = local_to_utc(day, slot_time, utc_offset_minutes)
        slot_end = slot_start + timedelta(minutes=duration_minutes)

        overlapping = count_overlapping(existing_reservations, slot_start, slot_end)
        remaining = max(0, limit - overlapping)
        available = overlapping < limit

        # Rest periods block regardless of capacity
        if is_rest_blocked(day_rests, start_minute, end_minute):
            available = False
            remaining = 0

        slots.append(SlotCandidate(time=slot_time, is_available=available, remaining_capacity=remaining))

    return DayAvailability(day=day, day_of_week=day_of_week, is_open=True, slots=slots)
