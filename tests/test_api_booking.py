"""API tests for the booking and admin endpoints."""
import asyncio

import httpx
import pytest
import pytest_asyncio

from apps.api.deps import get_calendar_sync, get_session_factory
from apps.api.main import app
from conftest import at
from core.settings import settings
from domain.enums import ReservationStatus


API = settings.api_v1_prefix


@pytest_asyncio.fixture(scope="function")
async def api_client(session_factory, seed):
    """HTTP client bound to the app with the test database."""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_calendar_sync] = lambda: None

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def booking_payload(seed):
    """Factory fixture for a booking request body."""
    def _payload(**overrides):
        body = {
            "slug": "salon",
            "serviceId": seed.haircut_id,
            "date": "2030-01-07",
            "time": "10:00",
            "timezoneOffset": 0,
            "clientName": "Maria Lopez",
            "clientPhone": "5551234567",
            "clientEmail": "maria@example.com",
        }
        body.update(overrides)
        return body
    return _payload


@pytest.mark.unit
class TestAvailabilityEndpoint:
    """Test GET /booking-calendars/availability."""

    @pytest.mark.asyncio
    async def test_lists_slots(self, api_client, seed):
        response = await api_client.get(
            f"{API}/booking-calendars/availability",
            params={"slug": "salon", "serviceId": seed.haircut_id, "date": "2030-01-07", "timezoneOffset": 0},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["isOpen"] is True
        assert body["dayOfWeek"] == "monday"
        assert body["slots"][0] == {"time": "09:00", "available": True, "remainingSlots": 1}
        assert len(body["slots"]) == 5
        assert body["service"]["name"] == "Haircut"
        assert body["service"]["price"] == "450.00"

    @pytest.mark.asyncio
    async def test_closed_day(self, api_client, seed):
        response = await api_client.get(
            f"{API}/booking-calendars/availability",
            params={"slug": "salon", "serviceId": seed.haircut_id, "date": "2030-01-06", "timezoneOffset": 0},
        )

        assert response.status_code == 200
        assert response.json()["isOpen"] is False
        assert response.json()["slots"] == []
        assert response.json()["message"] == "Business is closed on this day"

    @pytest.mark.asyncio
    async def test_missing_parameters(self, api_client):
        response = await api_client.get(f"{API}/booking-calendars/availability", params={"slug": "salon"})

        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    @pytest.mark.asyncio
    async def test_malformed_date(self, api_client, seed):
        response = await api_client.get(
            f"{API}/booking-calendars/availability",
            params={"slug": "salon", "serviceId": seed.haircut_id, "date": "07/01/2030"},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_calendar(self, api_client, seed):
        response = await api_client.get(
            f"{API}/booking-calendars/availability",
            params={"slug": "nope", "serviceId": seed.haircut_id, "date": "2030-01-07"},
        )

        assert response.status_code == 404
        assert response.json()["error"] == "Booking calendar not found or inactive"


@pytest.mark.unit
class TestBookEndpoint:
    """Test POST /booking-calendars/book."""

    @pytest.mark.asyncio
    async def test_book_success(self, api_client, booking_payload):
        response = await api_client.post(f"{API}/booking-calendars/book", json=booking_payload())

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Booking created successfully"
        booking = body["booking"]
        assert booking["service"] == "Haircut"
        assert booking["time"] == "10:00"
        assert booking["duration"] == 60
        assert booking["status"] == "confirmed"
        assert booking["date"].startswith("2030-01-07T10:00:00")
        assert booking["client"] == {
            "name": "Maria Lopez",
            "email": "maria@example.com",
            "phone": "5551234567",
        }

    @pytest.mark.asyncio
    async def test_timezone_offset_converts_to_utc(self, api_client, booking_payload):
        """Test local 10:00 at UTC-6 is stored as 16:00 UTC."""
        response = await api_client.post(
            f"{API}/booking-calendars/book",
            json=booking_payload(timezoneOffset=360),
        )

        assert response.status_code == 201
        assert response.json()["booking"]["date"].startswith("2030-01-07T16:00:00")

    @pytest.mark.asyncio
    async def test_conflict_returns_409(self, api_client, booking_payload):
        first = await api_client.post(f"{API}/booking-calendars/book", json=booking_payload())
        second = await api_client.post(
            f"{API}/booking-calendars/book",
            json=booking_payload(time="10:30", clientEmail="other@example.com"),
        )

        assert first.status_code == 201
        assert second.status_code == 409
        assert second.json()["error"] == "This time slot is no longer available"

    @pytest.mark.asyncio
    async def test_concurrent_requests_one_wins(self, api_client, booking_payload):
        responses = await asyncio.gather(
            api_client.post(f"{API}/booking-calendars/book", json=booking_payload()),
            api_client.post(
                f"{API}/booking-calendars/book",
                json=booking_payload(clientEmail="rival@example.com"),
            ),
        )

        assert sorted(r.status_code for r in responses) == [201, 409]

    @pytest.mark.asyncio
    async def test_missing_fields_returns_400(self, api_client, booking_payload):
        body = booking_payload()
        del body["clientName"]

        response = await api_client.post(f"{API}/booking-calendars/book", json=body)

        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    @pytest.mark.asyncio
    async def test_malformed_time_returns_400(self, api_client, booking_payload):
        response = await api_client.post(f"{API}/booking-calendars/book", json=booking_payload(time="25:00"))

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_outside_hours_returns_422(self, api_client, booking_payload):
        response = await api_client.post(f"{API}/booking-calendars/book", json=booking_payload(time="11:30"))

        assert response.status_code == 422
        assert response.json()["code"] == "outside_business_hours"

    @pytest.mark.asyncio
    async def test_disabled_service_returns_404(self, api_client, booking_payload, seed):
        response = await api_client.post(
            f"{API}/booking-calendars/book",
            json=booking_payload(serviceId=seed.unlisted_id),
        )

        assert response.status_code == 404
        assert response.json()["error"] == "Service not available in this calendar"


@pytest.mark.unit
class TestFinalizeEndpoint:
    """Test POST /bookings/finalize."""

    @pytest.mark.asyncio
    async def test_finalize_creates_and_is_idempotent(self, api_client, seed):
        payload = {
            "reservationId": "pay-api-1",
            "bookingIntentData": {
                "serviceId": seed.haircut_id,
                "clientName": "Paid Client",
                "clientPhone": "5551112222",
                "startTime": at(10).isoformat(),
                "endTime": at(11).isoformat(),
                "calendarSlug": "salon-paid",
                "calendarName": "Salon Premium",
            },
        }

        first = await api_client.post(f"{API}/bookings/finalize", json=payload)
        second = await api_client.post(f"{API}/bookings/finalize", json=payload)

        assert first.status_code == 200
        assert second.status_code == 200
        assert first.json()["reservation"]["id"] == "pay-api-1"
        assert second.json()["reservation"]["status"] == "confirmed"

        listed = await api_client.get(f"{API}/admin/reservations")
        assert [r["id"] for r in listed.json()] == ["pay-api-1"]

    @pytest.mark.asyncio
    async def test_finalize_unknown_without_data(self, api_client):
        response = await api_client.post(f"{API}/bookings/finalize", json={"reservationId": "nope"})

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_webhook_secret_enforced(self, api_client, monkeypatch):
        monkeypatch.setattr(settings, "finalize_webhook_secret", "s3cret")

        rejected = await api_client.post(
            f"{API}/bookings/finalize",
            json={"reservationId": "nope"},
            headers={"X-Webhook-Secret": "wrong"},
        )
        accepted = await api_client.post(
            f"{API}/bookings/finalize",
            json={"reservationId": "nope"},
            headers={"X-Webhook-Secret": "s3cret"},
        )

        assert rejected.status_code == 401
        # Past the secret check; the reservation itself is unknown
        assert accepted.status_code == 404


@pytest.mark.unit
class TestCancelAndAdmin:
    """Test cancellation and the admin views."""

    @pytest.mark.asyncio
    async def test_cancel_then_rebook(self, api_client, booking_payload):
        created = await api_client.post(f"{API}/booking-calendars/book", json=booking_payload())
        reservation_id = created.json()["booking"]["id"]

        cancelled = await api_client.post(
            f"{API}/bookings/{reservation_id}/cancel",
            json={"reason": "Client called"},
        )
        again = await api_client.post(f"{API}/bookings/{reservation_id}/cancel")
        rebooked = await api_client.post(
            f"{API}/booking-calendars/book",
            json=booking_payload(clientEmail="next@example.com"),
        )

        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == ReservationStatus.CANCELLED.value
        assert again.status_code == 400
        assert rebooked.status_code == 201

    @pytest.mark.asyncio
    async def test_admin_get_and_audit(self, api_client, booking_payload):
        created = await api_client.post(f"{API}/booking-calendars/book", json=booking_payload())
        reservation_id = created.json()["booking"]["id"]

        fetched = await api_client.get(f"{API}/admin/reservations/{reservation_id}")
        audit = await api_client.get(f"{API}/admin/reservations/{reservation_id}/audit")
        missing = await api_client.get(f"{API}/admin/reservations/missing")

        assert fetched.status_code == 200
        assert fetched.json()["status"] == "confirmed"
        assert [entry["action"] for entry in audit.json()] == ["reservation_created"]
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_admin_status_filter(self, api_client, create_reservation):
        await create_reservation(at(9), status=ReservationStatus.PENDING)
        await create_reservation(at(10))

        response = await api_client.get(f"{API}/admin/reservations", params={"status": "pending"})

        assert response.status_code == 200
        assert [r["status"] for r in response.json()] == ["pending"]
