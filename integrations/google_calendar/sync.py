"""
Best-effort reservation sync to Google Calendar.

The reservation is the source of truth. Sync runs after the booking
transaction commits, and a failure here is logged and dropped.
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.settings import settings
from db.models_sqlalchemy import Reservation
from domain.enums import AuditAction
from domain.exceptions import ExternalSyncError
from services.audit_log import record_audit
from services.booking_ledger import BookingLedger
from .client import GoogleCalendarClient


logger = logging.getLogger(__name__)


def build_event(reservation: Reservation) -> Dict[str, Any]:
    """Calendar event body for a reservation."""
    client = reservation.client
    service = reservation.service

    description = f"Service appointment with {client.name} ({client.phone})"
    if reservation.notes:
        description += f"\n\nNotes: {reservation.notes}"

    event: Dict[str, Any] = {
        "summary": f"{service.name} - {client.name}",
        "description": description,
        "start": {"dateTime": reservation.start_time.isoformat(), "timeZone": "UTC"},
        "end": {"dateTime": reservation.end_time.isoformat(), "timeZone": "UTC"},
    }

    if client.email and not client.email.endswith(f"@{settings.temp_email_domain}"):
        event["attendees"] = [{"email": client.email}]

    return event


def target_calendar_id(reservation: Reservation) -> Optional[str]:
    """Google calendar for a reservation, None for the client's default."""
    if reservation.google_calendar_id:
        return reservation.google_calendar_id
    if reservation.calendar is not None and reservation.calendar.google_calendar_id:
        return reservation.calendar.google_calendar_id
    return None


class CalendarSync:
    """Pushes reservation changes to Google Calendar without failing bookings."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        client: Optional[GoogleCalendarClient] = None,
    ):
        self.session_factory = session_factory
        self.client = client or GoogleCalendarClient()

    async def sync_reservation(self, reservation_id: str) -> Optional[str]:
        """
        Create or update the calendar event for a reservation.

        Stores the event ID on the reservation in its own transaction. When a
        concurrent sync stored an event first, the duplicate is deleted.

        Returns:
            External event ID, or None when skipped or failed
        """
        if not self.client.is_configured:
            logger.info("Google Calendar not configured, skipping sync")
            return None

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    ledger = BookingLedger(session)
                    reservation = await ledger.get(reservation_id, for_update=True)
                    if reservation is None:
                        logger.warning(f"Reservation {reservation_id} vanished before calendar sync")
                        return None

                    event = build_event(reservation)
                    calendar_id = target_calendar_id(reservation) or self.client.default_calendar_id

                    if reservation.external_event_id:
                        await self.client.update_event(reservation.external_event_id, event, calendar_id)
                        return reservation.external_event_id

                    event_id = await self.client.create_event(event, calendar_id)
                    if not await ledger.attach_external_event(reservation.id, event_id, calendar_id):
                        await self.client.delete_event(event_id, calendar_id)
                        await session.refresh(reservation, ["external_event_id"])
                        logger.info(
                            f"Reservation {reservation_id} already has event "
                            f"{reservation.external_event_id}, dropped duplicate {event_id}"
                        )
                        return reservation.external_event_id

                    await record_audit(
                        session,
                        AuditAction.CALENDAR_SYNCED,
                        reservation.id,
                        {"external_event_id": event_id, "google_calendar_id": calendar_id},
                    )
                    return event_id
        except ExternalSyncError as e:
            logger.error(f"Calendar sync failed for reservation {reservation_id}: {e}")
        except SQLAlchemyError as e:
            logger.error(f"Could not store calendar event for reservation {reservation_id}: {e}")
        except Exception as e:
            logger.error(f"Unexpected calendar sync error for reservation {reservation_id}: {e}", exc_info=True)
        return None

    async def remove_reservation(self, reservation: Reservation) -> bool:
        """Delete the calendar event of a cancelled reservation."""
        if not reservation.external_event_id or not self.client.is_configured:
            return False

        try:
            await self.client.delete_event(reservation.external_event_id, target_calendar_id(reservation))
            return True
        except ExternalSyncError as e:
            logger.error(f"Calendar delete failed for reservation {reservation.id}: {e}")
        except Exception as e:
            logger.error(f"Unexpected calendar delete error for reservation {reservation.id}: {e}", exc_info=True)
        return False
