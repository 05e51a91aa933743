"""Domain layer for the salon booking engine."""

from .enums import (
    ReservationStatus,
    AuditAction,
    DayOfWeek,
    STATUS_TRANSITIONS,
)
from .exceptions import (
    BookingError,
    ValidationError,
    NotFoundError,
    ServiceUnavailable,
    OutsideBusinessHours,
    RestPeriodBlocked,
    ConflictError,
    ExternalSyncError,
    AuthenticationError,
)
from .scheduling import (
    DaySchedule,
    RestPeriod,
    BookedInterval,
    SlotCandidate,
    DayAvailability,
    intervals_overlap,
)
from .models import (
    ClientInfo,
    AvailabilitySlot,
    AvailabilityResponse,
    ServiceSummary,
    BookingRequest,
    BookingClient,
    BookingSummary,
    BookingResponse,
    BookingIntentData,
    FinalizeRequest,
    ReservationCancelRequest,
    ReservationRecord,
)

__all__ = [
    # Enums
    "ReservationStatus",
    "AuditAction",
    "DayOfWeek",
    "STATUS_TRANSITIONS",
    # Errors
    "BookingError",
    "ValidationError",
    "NotFoundError",
    "ServiceUnavailable",
    "OutsideBusinessHours",
    "RestPeriodBlocked",
    "ConflictError",
    "ExternalSyncError",
    "AuthenticationError",
    # Scheduling
    "DaySchedule",
    "RestPeriod",
    "BookedInterval",
    "SlotCandidate",
    "DayAvailability",
    "intervals_overlap",
    # Models
    "ClientInfo",
    "AvailabilitySlot",
    "AvailabilityResponse",
    "ServiceSummary",
    "BookingRequest",
    "BookingClient",
    "BookingSummary",
    "BookingResponse",
    "BookingIntentData",
    "FinalizeRequest",
    "ReservationCancelRequest",
    "ReservationRecord",
]
