"""Domain enums for the salon booking engine."""

from datetime import date
from enum import Enum
from typing import List


class ReservationStatus(str, Enum):
    """Reservation status enumeration."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"

    def can_transition_to(self, target: "ReservationStatus") -> bool:
        return target in STATUS_TRANSITIONS[self]

    @classmethod
    def sources_of(cls, target: "ReservationStatus") -> List["ReservationStatus"]:
        """Statuses a reservation may be in to move to ``target``."""
        return [status for status in cls if status.can_transition_to(target)]


# Allowed status transitions; anything else is rejected
STATUS_TRANSITIONS = {
    ReservationStatus.PENDING: {ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED},
    ReservationStatus.CONFIRMED: {ReservationStatus.CANCELLED},
    ReservationStatus.CANCELLED: set(),
}


class AuditAction(str, Enum):
    """Audit log action types."""

    RESERVATION_CREATED = "reservation_created"
    RESERVATION_CONFIRMED = "reservation_confirmed"
    RESERVATION_CANCELLED = "reservation_cancelled"
    CALENDAR_SYNCED = "calendar_synced"


class DayOfWeek(str, Enum):
    """Days of the week."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def from_date(cls, day: date) -> "DayOfWeek":
        """Day of week of a calendar date (Monday is weekday 0)."""
        return list(cls)[day.weekday()]
