"""Admin endpoints for viewing reservations and their audit trail."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.deps import get_db
from domain.enums import ReservationStatus
from domain.exceptions import NotFoundError
from domain.models import ReservationRecord
from services.audit_log import get_audit_log
from services.booking_ledger import BookingLedger


router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/reservations", response_model=List[ReservationRecord])
async def list_reservations(
    status: Optional[ReservationStatus] = Query(None, description="Filter by reservation status"),
    start_from: Optional[datetime] = Query(None, alias="startFrom", description="Earliest start (inclusive)"),
    start_until: Optional[datetime] = Query(None, alias="startUntil", description="Latest start (exclusive)"),
    limit: int = Query(50, ge=1, le=200, description="Number of reservations to return"),
    offset: int = Query(0, ge=0, description="Number of reservations to skip"),
    db: AsyncSession = Depends(get_db),
):
    """
    List reservations with optional filtering.

    Args:
        status: Filter by reservation status (pending, confirmed, cancelled)
        start_from: Only reservations starting at or after this instant
        start_until: Only reservations starting before this instant
        limit: Maximum number of reservations to return
        offset: Number of reservations to skip (for pagination)
        db: Database session

    Returns:
        List[ReservationRecord]: Reservations, latest start first
    """
    return await BookingLedger(db).list_reservations(
        status=status,
        start_from=start_from,
        start_until=start_until,
        limit=limit,
        offset=offset,
    )


@router.get("/reservations/{reservation_id}", response_model=ReservationRecord)
async def get_reservation(
    reservation_id: str,
    db: AsyncSession = Depends(get_db),
):
    """
    Get a specific reservation by ID.

    Args:
        reservation_id: Reservation ID
        db: Database session

    Returns:
        ReservationRecord: Reservation details
    """
    reservation = await BookingLedger(db).get(reservation_id)

    if not reservation:
        raise NotFoundError("Reservation not found")

    return reservation


@router.get("/reservations/{reservation_id}/audit")
async def get_reservation_audit(
    reservation_id: str,
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """Audit trail of one reservation, oldest first."""
    entries = await get_audit_log(db, entity_id=reservation_id, limit=limit)
    return [
        {
            "action": entry.action,
            "details": entry.details,
            "created_at": entry.created_at,
        }
        for entry in entries
    ]
