"""Tests for the Google Calendar client and the best-effort reservation sync."""
import asyncio
import json

import httpx
import pytest

from conftest import at
from domain.enums import AuditAction, ReservationStatus
from domain.exceptions import ExternalSyncError
from domain.models import ClientInfo
from integrations.google_calendar import CalendarSync, GoogleCalendarClient, build_event
from services.audit_log import get_audit_log
from services.booking_finalizer import BookingFinalizer
from services.booking_ledger import BookingLedger
from services.reservation_arbiter import ReservationArbiter


class FakeCalendarApi:
    """Records requests and answers like the Calendar v3 events API."""

    def __init__(self, fail_with: int = None, raw_body: str = None, raises: Exception = None):
        self.requests = []
        self.fail_with = fail_with
        self.raw_body = raw_body
        self.raises = raises

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raises:
            raise self.raises
        if self.fail_with:
            return httpx.Response(self.fail_with, json={"error": "boom"})
        if request.method == "POST" and self.raw_body is not None:
            return httpx.Response(200, text=self.raw_body)
        if request.method == "POST":
            return httpx.Response(200, json={"id": f"evt-{len(self.requests)}"})
        if request.method == "DELETE":
            return httpx.Response(204)
        return httpx.Response(200, json={"id": request.url.path.rsplit("/", 1)[-1]})

    def client(self) -> GoogleCalendarClient:
        return GoogleCalendarClient(
            access_token="test-token",
            default_calendar_id="primary",
            base_url="https://calendar.test/v3",
            transport=httpx.MockTransport(self),
        )


@pytest.mark.unit
class TestGoogleCalendarClient:
    """Test the REST wrapper."""

    @pytest.mark.asyncio
    async def test_create_event(self):
        api = FakeCalendarApi()

        event_id = await api.client().create_event({"summary": "Haircut"}, "salon@group.test")

        assert event_id == "evt-1"
        request = api.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/v3/calendars/salon@group.test/events"
        assert request.headers["Authorization"] == "Bearer test-token"
        assert json.loads(request.content) == {"summary": "Haircut"}

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        api = FakeCalendarApi(fail_with=500)

        with pytest.raises(ExternalSyncError) as exc_info:
            await api.client().create_event({"summary": "Haircut"})
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw_body", ["<html>proxy</html>", "[1, 2]"])
    async def test_unusable_success_body_raises(self, raw_body):
        """Test a 2xx answer without an event object is a sync error."""
        api = FakeCalendarApi(raw_body=raw_body)

        with pytest.raises(ExternalSyncError):
            await api.client().create_event({"summary": "Haircut"})

    @pytest.mark.asyncio
    async def test_delete_of_missing_event_is_ok(self):
        api = FakeCalendarApi(fail_with=410)

        await api.client().delete_event("evt-gone")

    @pytest.mark.asyncio
    async def test_unconfigured_client_raises(self):
        client = GoogleCalendarClient(access_token="")

        assert client.is_configured is False
        with pytest.raises(ExternalSyncError):
            await client.create_event({"summary": "Haircut"})


@pytest.mark.unit
class TestCalendarSync:
    """Test sync hooks on the booking write paths."""

    @pytest.mark.asyncio
    async def test_reserve_creates_event_and_stores_id(self, session_factory, seed, sample_client_info):
        api = FakeCalendarApi()
        arbiter = ReservationArbiter(session_factory, CalendarSync(session_factory, api.client()))

        reservation = await arbiter.reserve("salon", seed.haircut_id, at(10), sample_client_info,
                                            utc_offset_minutes=0)

        async with session_factory() as session:
            stored = await BookingLedger(session).get(reservation.id)
            entries = await get_audit_log(session, entity_id=reservation.id)

        assert stored.external_event_id == "evt-1"
        assert entries[-1].action == AuditAction.CALENDAR_SYNCED.value

        body = json.loads(api.requests[0].content)
        assert body["summary"] == "Haircut - Maria Lopez"
        assert body["attendees"] == [{"email": "maria@example.com"}]
        assert body["start"]["dateTime"].startswith("2030-01-07T10:00:00")

    @pytest.mark.asyncio
    async def test_sync_failure_keeps_reservation(self, session_factory, seed, sample_client_info):
        """Test a failing calendar never rolls back the booking."""
        api = FakeCalendarApi(fail_with=503)
        arbiter = ReservationArbiter(session_factory, CalendarSync(session_factory, api.client()))

        reservation = await arbiter.reserve("salon", seed.haircut_id, at(10), sample_client_info,
                                            utc_offset_minutes=0)

        async with session_factory() as session:
            stored = await BookingLedger(session).get(reservation.id)
        assert stored.status == ReservationStatus.CONFIRMED.value
        assert stored.external_event_id is None

    @pytest.mark.asyncio
    async def test_finalize_updates_existing_event(self, session_factory, create_reservation):
        api = FakeCalendarApi()
        pending = await create_reservation(
            at(10), status=ReservationStatus.PENDING, external_event_id="evt-existing"
        )
        finalizer = BookingFinalizer(session_factory, CalendarSync(session_factory, api.client()))

        await finalizer.finalize(pending.id)

        assert [r.method for r in api.requests] == ["PUT"]
        assert api.requests[0].url.path.endswith("/events/evt-existing")

    @pytest.mark.asyncio
    async def test_finalize_without_change_does_not_sync(self, session_factory, create_reservation):
        api = FakeCalendarApi()
        confirmed = await create_reservation(at(10))
        finalizer = BookingFinalizer(session_factory, CalendarSync(session_factory, api.client()))

        await finalizer.finalize(confirmed.id)

        assert api.requests == []

    @pytest.mark.asyncio
    async def test_cancel_deletes_event(self, session_factory, seed, create_reservation):
        api = FakeCalendarApi()
        reservation = await create_reservation(at(10), external_event_id="evt-9")
        arbiter = ReservationArbiter(session_factory, CalendarSync(session_factory, api.client()))

        await arbiter.cancel(reservation.id)

        assert [r.method for r in api.requests] == ["DELETE"]

    @pytest.mark.asyncio
    async def test_placeholder_email_not_invited(self, session_factory, seed):
        api = FakeCalendarApi()
        arbiter = ReservationArbiter(session_factory, CalendarSync(session_factory, api.client()))
        reservation = await arbiter.reserve(
            "salon", seed.haircut_id, at(10), ClientInfo(name="Walk In", phone="5559998888"),
            utc_offset_minutes=0,
        )

        assert "attendees" not in build_event(reservation)
        assert "attendees" not in json.loads(api.requests[0].content)

    @pytest.mark.asyncio
    async def test_reserve_survives_non_json_calendar_answer(self, session_factory, seed, sample_client_info):
        """Test a proxy page answered with 200 leaves the booking committed and returned."""
        api = FakeCalendarApi(raw_body="<html>proxy</html>")
        arbiter = ReservationArbiter(session_factory, CalendarSync(session_factory, api.client()))

        reservation = await arbiter.reserve("salon", seed.haircut_id, at(10), sample_client_info,
                                            utc_offset_minutes=0)

        async with session_factory() as session:
            stored = await BookingLedger(session).get(reservation.id)
        assert stored.status == ReservationStatus.CONFIRMED.value
        assert stored.external_event_id is None

    @pytest.mark.asyncio
    async def test_unexpected_client_error_is_contained(self, session_factory, create_reservation):
        """Test an unforeseen error inside the calendar client never fails finalization."""
        api = FakeCalendarApi(raises=RuntimeError("socket exploded"))
        pending = await create_reservation(at(10), status=ReservationStatus.PENDING)
        finalizer = BookingFinalizer(session_factory, CalendarSync(session_factory, api.client()))

        result = await finalizer.finalize(pending.id)

        assert result.status == ReservationStatus.CONFIRMED.value

    @pytest.mark.asyncio
    async def test_unexpected_delete_error_is_contained(self, session_factory, seed, create_reservation):
        api = FakeCalendarApi(raises=RuntimeError("socket exploded"))
        reservation = await create_reservation(at(10), external_event_id="evt-9")
        arbiter = ReservationArbiter(session_factory, CalendarSync(session_factory, api.client()))

        cancelled = await arbiter.cancel(reservation.id)

        assert cancelled.status == ReservationStatus.CANCELLED.value

    @pytest.mark.asyncio
    async def test_stores_target_calendar(self, session_factory, create_reservation):
        api = FakeCalendarApi()
        reservation = await create_reservation(at(10))

        await CalendarSync(session_factory, api.client()).sync_reservation(reservation.id)

        async with session_factory() as session:
            stored = await BookingLedger(session).get(reservation.id)
        assert stored.google_calendar_id == "primary"

    @pytest.mark.asyncio
    async def test_concurrent_syncs_keep_one_event(self, session_factory, create_reservation):
        """Test racing syncs of one reservation leave a single live calendar event."""
        api = FakeCalendarApi()
        reservation = await create_reservation(at(10))
        sync = CalendarSync(session_factory, api.client())

        results = await asyncio.gather(
            sync.sync_reservation(reservation.id),
            sync.sync_reservation(reservation.id),
        )

        async with session_factory() as session:
            stored = await BookingLedger(session).get(reservation.id)

        methods = [r.method for r in api.requests]
        assert stored.external_event_id is not None
        assert set(results) == {stored.external_event_id}
        assert methods.count("POST") - methods.count("DELETE") == 1
