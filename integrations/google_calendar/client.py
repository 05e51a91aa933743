"""
Google Calendar client.

Thin async wrapper over the Calendar v3 REST API. Every call raises
ExternalSyncError on failure; callers decide whether that matters.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from core.settings import settings
from domain.exceptions import ExternalSyncError


logger = logging.getLogger(__name__)


class GoogleCalendarClient:
    """Create, update and delete events on a Google calendar."""

    def __init__(
        self,
        access_token: Optional[str] = None,
        default_calendar_id: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token or settings.google_calendar_access_token
        self.default_calendar_id = default_calendar_id or settings.google_calendar_id
        self.base_url = (base_url or settings.google_calendar_api_url).rstrip("/")
        self.timeout = timeout or settings.google_calendar_timeout_seconds
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.access_token)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={"Authorization": f"Bearer {self.access_token}"},
            transport=self._transport,
        )

    def _events_path(self, calendar_id: Optional[str]) -> str:
        return f"/calendars/{calendar_id or self.default_calendar_id}/events"

    async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> httpx.Response:
        if not self.is_configured:
            raise ExternalSyncError("Google Calendar is not configured")

        try:
            async with self._client() as client:
                response = await client.request(method, path, json=json)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ExternalSyncError(f"Google Calendar request failed: {e}") from e

        if response.status_code >= 400:
            raise ExternalSyncError(
                f"Google Calendar answered {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        return response

    async def create_event(self, event: Dict[str, Any], calendar_id: Optional[str] = None) -> str:
        """
        Create an event.

        Args:
            event: Event body (summary, description, start, end, attendees)
            calendar_id: Target calendar, default calendar when omitted

        Returns:
            The external event ID
        """
        response = await self._request("POST", self._events_path(calendar_id), json=event)
        try:
            body = response.json()
        except ValueError as e:
            raise ExternalSyncError("Google Calendar answered with a non-JSON body") from e

        event_id = body.get("id") if isinstance(body, dict) else None
        if not event_id:
            raise ExternalSyncError("Google Calendar response carried no event id")

        logger.info(f"Google Calendar event created: {event_id}")
        return event_id

    async def update_event(self, event_id: str, event: Dict[str, Any], calendar_id: Optional[str] = None) -> None:
        """Replace an existing event."""
        await self._request("PUT", f"{self._events_path(calendar_id)}/{event_id}", json=event)
        logger.info(f"Google Calendar event updated: {event_id}")

    async def delete_event(self, event_id: str, calendar_id: Optional[str] = None) -> None:
        """Delete an event. An event that is already gone counts as deleted."""
        try:
            await self._request("DELETE", f"{self._events_path(calendar_id)}/{event_id}")
        except ExternalSyncError as e:
            if e.status_code in (404, 410):
                logger.info(f"Google Calendar event {event_id} already deleted")
                return
            raise
        logger.info(f"Google Calendar event deleted: {event_id}")
