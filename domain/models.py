"""Domain models using Pydantic v2 for the booking API."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from core.utils_datetime import ensure_utc, parse_hhmm, parse_iso_date
from .enums import ReservationStatus


PHONE_PATTERN = r"^\+?[0-9][0-9\s\-()]{5,19}$"


class ClientInfo(BaseModel):
    """Client details carried by a booking request."""

    name: str = Field(..., min_length=1, max_length=255, description="Client name")
    phone: str = Field(..., pattern=PHONE_PATTERN, description="Client phone number")
    email: Optional[str] = Field(None, max_length=255, description="Client email")
    notes: Optional[str] = Field(None, max_length=1000, description="Notes for the appointment")

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        """Blank emails are treated as missing."""
        if v is None or not v:
            return None
        if "@" not in v:
            raise ValueError("clientEmail must be an email address")
        return v.lower()


class AvailabilitySlot(BaseModel):
    """One candidate slot."""

    time: str
    available: bool
    remaining_slots: int = Field(..., alias="remainingSlots", ge=0)

    model_config = ConfigDict(populate_by_name=True)


class ServiceSummary(BaseModel):
    """Service details echoed back with availability."""

    id: str
    name: str
    duration: int
    price: Decimal

    model_config = ConfigDict(from_attributes=True)


class AvailabilityResponse(BaseModel):
    """Response with candidate slots for one day."""

    date: date
    day_of_week: str = Field(..., alias="dayOfWeek")
    is_open: bool = Field(..., alias="isOpen")
    slots: List[AvailabilitySlot] = Field(default_factory=list)
    service: Optional[ServiceSummary] = None
    message: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class BookingRequest(BaseModel):
    """Public booking submission."""

    slug: str = Field(..., min_length=1, max_length=100)
    service_id: str = Field(..., alias="serviceId", min_length=1)
    date: str = Field(..., description="Local date, YYYY-MM-DD")
    time: str = Field(..., description="Local time, HH:MM")
    timezone_offset: Optional[int] = Field(None, alias="timezoneOffset", ge=-14 * 60, le=14 * 60)
    client_name: str = Field(..., alias="clientName", min_length=1, max_length=255)
    client_phone: str = Field(..., alias="clientPhone", pattern=PHONE_PATTERN)
    client_email: Optional[str] = Field(None, alias="clientEmail", max_length=255)
    notes: Optional[str] = Field(None, max_length=1000)
    staff_id: Optional[str] = Field(None, alias="staffId")

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        if parse_iso_date(v) is None:
            raise ValueError("date must be YYYY-MM-DD")
        return v

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        if parse_hhmm(v) is None:
            raise ValueError("time must be HH:MM")
        return v

    def client_info(self) -> ClientInfo:
        return ClientInfo(
            name=self.client_name,
            phone=self.client_phone,
            email=self.client_email,
            notes=self.notes,
        )


class BookingClient(BaseModel):
    """Client block of a booking response."""

    name: str
    email: str
    phone: str

    model_config = ConfigDict(from_attributes=True)


class BookingSummary(BaseModel):
    """Created booking."""

    id: str
    service: str
    date: datetime = Field(..., description="Start instant, ISO-8601 UTC")
    time: str
    duration: int
    status: ReservationStatus
    client: BookingClient


class BookingResponse(BaseModel):
    """Successful booking submission."""

    success: bool = True
    booking: BookingSummary
    message: str = "Booking created successfully"


class BookingIntentData(BaseModel):
    """Booking details carried through an external payment gate."""

    service_id: str = Field(..., alias="serviceId", min_length=1)
    client_name: str = Field(..., alias="clientName", min_length=1, max_length=255)
    client_email: Optional[str] = Field(None, alias="clientEmail", max_length=255)
    client_phone: str = Field(..., alias="clientPhone", pattern=PHONE_PATTERN)
    notes: Optional[str] = Field(None, max_length=1000)
    start_time: datetime = Field(..., alias="startTime")
    end_time: datetime = Field(..., alias="endTime")
    staff_id: Optional[str] = Field(None, alias="staffId")
    total: Optional[Decimal] = Field(None, ge=0)
    google_calendar_id: Optional[str] = Field(None, alias="googleCalendarId")
    calendar_slug: Optional[str] = Field(None, alias="calendarSlug")
    calendar_name: Optional[str] = Field(None, alias="calendarName")

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @model_validator(mode="after")
    def check_interval(self) -> "BookingIntentData":
        if self.start_time >= self.end_time:
            raise ValueError("startTime must be before endTime")
        return self

    @property
    def duration_minutes(self) -> int:
        return round((self.end_time - self.start_time).total_seconds() / 60)

    def client_info(self) -> ClientInfo:
        return ClientInfo(
            name=self.client_name,
            phone=self.client_phone,
            email=self.client_email,
            notes=self.notes,
        )


class FinalizeRequest(BaseModel):
    """Payment-confirmation callback payload."""

    reservation_id: str = Field(..., alias="reservationId", min_length=1, max_length=64)
    booking_intent_data: Optional[BookingIntentData] = Field(None, alias="bookingIntentData")

    model_config = ConfigDict(populate_by_name=True)


class ReservationCancelRequest(BaseModel):
    """Request to cancel a reservation."""

    reason: Optional[str] = Field(None, max_length=500)

    model_config = ConfigDict(str_strip_whitespace=True)


class ReservationRecord(BaseModel):
    """Complete reservation record from database."""

    id: str
    start_time: datetime
    end_time: datetime
    status: ReservationStatus
    client_id: str
    staff_id: str
    service_id: str
    calendar_id: Optional[str] = None
    price: Optional[Decimal] = None
    notes: Optional[str] = None
    external_event_id: Optional[str] = None
    google_calendar_id: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
