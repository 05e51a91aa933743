"""Google Calendar integration."""

from .client import GoogleCalendarClient
from .sync import CalendarSync, build_event

__all__ = ["GoogleCalendarClient", "CalendarSync", "build_event"]
