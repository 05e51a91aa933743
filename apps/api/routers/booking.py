"""Public booking endpoints: availability, booking, payment finalization, cancellation."""

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Header, Query, status
from fastapi.responses import JSONResponse

from apps.api.deps import get_arbiter, get_availability_service, get_finalizer
from core.settings import settings
from core.utils_datetime import local_to_utc, parse_hhmm, parse_iso_date, resolve_utc_offset
from db.models_sqlalchemy import Reservation
from domain.exceptions import AuthenticationError, BookingError, ValidationError
from domain.models import (
    AvailabilityResponse,
    BookingClient,
    BookingRequest,
    BookingResponse,
    BookingSummary,
    FinalizeRequest,
    ReservationCancelRequest,
    ReservationRecord,
)
from services.availability_service import AvailabilityService
from services.booking_finalizer import BookingFinalizer
from services.reservation_arbiter import ReservationArbiter


logger = logging.getLogger(__name__)

router = APIRouter(tags=["booking"])


@router.get(
    "/booking-calendars/availability",
    response_model=AvailabilityResponse,
)
async def get_availability(
    slug: str = Query(..., min_length=1, description="Booking calendar slug"),
    service_id: str = Query(..., alias="serviceId", min_length=1, description="Service ID"),
    date: str = Query(..., description="Local date, YYYY-MM-DD"),
    timezone_offset: Optional[int] = Query(
        None,
        alias="timezoneOffset",
        ge=-14 * 60,
        le=14 * 60,
        description="Client offset in minutes (UTC minus local)",
    ),
    availability: AvailabilityService = Depends(get_availability_service),
):
    """
    List the slots of one day for a service.

    Returns:
        AvailabilityResponse: Slots in chronological order
    """
    day = parse_iso_date(date)
    if day is None:
        raise ValidationError("Invalid date, expected YYYY-MM-DD", {"date": date})

    return await availability.get_availability(slug, service_id, day, timezone_offset)


@router.post(
    "/booking-calendars/book",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_booking(
    request: BookingRequest,
    arbiter: ReservationArbiter = Depends(get_arbiter),
):
    """
    Book a slot from the public booking page.

    Answers 409 when the slot filled up between listing and booking.
    """
    day = parse_iso_date(request.date)
    wall_time = parse_hhmm(request.time)
    offset = resolve_utc_offset(day, request.timezone_offset)
    requested_start = local_to_utc(day, wall_time, offset)

    try:
        reservation = await arbiter.reserve(
            calendar_slug=request.slug,
            service_id=request.service_id,
            requested_start=requested_start,
            client_info=request.client_info(),
            staff_id=request.staff_id,
            utc_offset_minutes=offset,
        )
    except BookingError:
        raise
    except Exception as e:
        logger.exception(f"Error creating booking: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to create booking"},
        )

    return BookingResponse(booking=booking_summary(reservation, request.time))


def booking_summary(reservation: Reservation, local_time: str) -> BookingSummary:
    return BookingSummary(
        id=reservation.id,
        service=reservation.service.name,
        date=reservation.start_time,
        time=local_time,
        duration=reservation.duration_minutes,
        status=reservation.status_enum,
        client=BookingClient.model_validate(reservation.client),
    )


def check_webhook_secret(provided: Optional[str]) -> None:
    """Constant-time check of the finalize webhook secret, when one is configured."""
    expected = settings.finalize_webhook_secret
    if not expected:
        return
    if provided is None or not hmac.compare_digest(provided.encode(), expected.encode()):
        raise AuthenticationError("Invalid webhook secret")


@router.post("/bookings/finalize")
async def finalize_booking(
    request: FinalizeRequest,
    x_webhook_secret: Optional[str] = Header(None, alias="X-Webhook-Secret"),
    finalizer: BookingFinalizer = Depends(get_finalizer),
):
    """
    Payment confirmation callback.

    Retriable: repeated calls for the same reservation return the same record.
    """
    check_webhook_secret(x_webhook_secret)

    reservation = await finalizer.finalize(request.reservation_id, request.booking_intent_data)
    return {
        "success": True,
        "reservation": ReservationRecord.model_validate(reservation),
    }


@router.post("/bookings/{reservation_id}/cancel", response_model=ReservationRecord)
async def cancel_booking(
    reservation_id: str,
    request: Optional[ReservationCancelRequest] = Body(None),
    arbiter: ReservationArbiter = Depends(get_arbiter),
):
    """Cancel a pending or confirmed reservation."""
    reason = request.reason if request is not None else None
    reservation = await arbiter.cancel(reservation_id, reason)
    return ReservationRecord.model_validate(reservation)
