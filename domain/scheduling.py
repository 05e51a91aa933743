"""
Scheduling value objects shared by the schedule store, the slot calculator
and the reservation arbiter.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import List, Optional

from core.utils_datetime import ensure_utc, format_hhmm, minutes_since_midnight
from .enums import DayOfWeek


def intervals_overlap(a_start, a_end, b_start, b_end) -> bool:
    """Half-open overlap test: [a_start, a_end) intersects [b_start, b_end)."""
    return a_start < b_end and a_end > b_start


@dataclass(frozen=True)
class DaySchedule:
    """Open hours for one day of the week."""
    day_of_week: DayOfWeek
    is_open: bool
    open_time: Optional[time] = None
    close_time: Optional[time] = None

    @classmethod
    def closed(cls, day_of_week: DayOfWeek) -> "DaySchedule":
        return cls(day_of_week=day_of_week, is_open=False)

    @property
    def has_hours(self) -> bool:
        """Open with a usable, non-empty time range."""
        return (
            self.is_open
            and self.open_time is not None
            and self.close_time is not None
            and self.open_time < self.close_time
        )

    def contains(self, start: time, duration_minutes: int) -> bool:
        """Check if [start, start + duration) fits inside the open hours."""
        if not self.has_hours:
            return False
        start_min = minutes_since_midnight(start)
        return (
            minutes_since_midnight(self.open_time) <= start_min
            and start_min + duration_minutes <= minutes_since_midnight(self.close_time)
        )


@dataclass(frozen=True)
class RestPeriod:
    """Recurring blackout inside a day (e.g. lunch break)."""
    day_of_week: DayOfWeek
    start_time: time
    end_time: time

    def blocks(self, start_minute: int, end_minute: int) -> bool:
        """Check if a local [start, end) minute range intersects this period."""
        return intervals_overlap(
            start_minute,
            end_minute,
            minutes_since_midnight(self.start_time),
            minutes_since_midnight(self.end_time),
        )


@dataclass(frozen=True)
class BookedInterval:
    """An existing reservation reduced to what capacity counting needs."""
    start: datetime
    end: datetime

    def __post_init__(self):
        object.__setattr__(self, "start", ensure_utc(self.start))
        object.__setattr__(self, "end", ensure_utc(self.end))

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return intervals_overlap(self.start, self.end, start, end)


@dataclass(frozen=True)
class SlotCandidate:
    """A computed slot. Never persisted."""
    time: time
    is_available: bool
    remaining_capacity: int

    def to_dict(self) -> dict:
        return {
            "time": format_hhmm(self.time),
            "available": self.is_available,
            "remainingSlots": self.remaining_capacity,
        }


@dataclass
class DayAvailability:
    """Slot list for one local day."""
    day: date
    day_of_week: DayOfWeek
    is_open: bool
    slots: List[SlotCandidate] = field(default_factory=list)

    @property
    def available_slots(self) -> List[SlotCandidate]:
        return [slot for slot in self.slots if slot.is_available]
