"""Booking error taxonomy.

Each error carries the HTTP status the API layer answers with. Policy and
validation errors are raised before any write; ``ConflictError`` is raised
from inside the commit transaction.
"""
from typing import Any, Dict, Optional


class BookingError(Exception):
    """Base class for errors surfaced to booking callers."""

    status_code = 400
    code = "booking_error"
    # Expected outcomes are logged at warning level, not with a traceback
    expected = True

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(BookingError):
    """Missing or malformed request fields."""

    status_code = 400
    code = "validation_error"


class NotFoundError(BookingError):
    """Referenced calendar, service, staff or reservation does not exist."""

    status_code = 404
    code = "not_found"


class ServiceUnavailable(BookingError):
    """Service is not enabled on the booking calendar."""

    status_code = 404
    code = "service_unavailable"


class OutsideBusinessHours(BookingError):
    """Requested interval is not inside the day's open hours."""

    status_code = 422
    code = "outside_business_hours"


class RestPeriodBlocked(BookingError):
    """Requested interval intersects a rest period."""

    status_code = 422
    code = "rest_period_blocked"


class ConflictError(BookingError):
    """Capacity exhausted at commit time."""

    status_code = 409
    code = "slot_unavailable"

    def __init__(self, message: str = "This time slot is no longer available",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class ExternalSyncError(Exception):
    """Outbound calendar call failed. Logged and swallowed by the sync layer."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(BookingError):
    """Webhook caller did not present the shared secret."""

    status_code = 401
    code = "unauthorized"
