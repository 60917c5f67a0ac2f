"""Google Calendar integration for floating-tasks (read-only, today's events)."""

import logging
import os
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from floatingtasks.models.constants import CALENDAR_MAX_RESULTS, UNTITLED_EVENT_SUMMARY
from floatingtasks.models.external import CalendarEvent

load_dotenv()

logger = logging.getLogger(__name__)

# Google Calendar API scopes
SCOPES = ["https://www.googleapis.com/auth/calendar.readonly"]


class CalendarFetchError(Exception):
    """Raised when today's events cannot be fetched."""


def local_day_window(now: Optional[datetime] = None) -> tuple:
    """Return (start, end) of the caller's local day as aware datetimes."""
    now = (now or datetime.now()).astimezone()
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


def normalize_event(item: Dict[str, Any]) -> CalendarEvent:
    """Normalize a Google Calendar event resource to a CalendarEvent.

    Events with only a `date` (no `dateTime`) are all-day events.
    """
    start = item.get("start") or {}
    end = item.get("end") or {}
    return CalendarEvent(
        id=item["id"],
        summary=item.get("summary") or UNTITLED_EVENT_SUMMARY,
        start=start.get("dateTime") or start.get("date") or "",
        end=end.get("dateTime") or end.get("date") or "",
        is_all_day=not start.get("dateTime"),
        html_link=item.get("htmlLink"),
    )


class GoogleCalendarClient:
    """Client for Google Calendar API integration."""

    def __init__(
        self,
        access_token: Optional[str] = None,
        calendar_id: Optional[str] = None,
        credentials: Optional[Credentials] = None,
    ):
        """Initialize Google Calendar client.

        Args:
            access_token: OAuth2 access token obtained by the login flow.
            calendar_id: Google Calendar ID to use.
                        If None, reads from GOOGLE_CALENDAR_ID env var (defaults to 'primary').
            credentials: Prebuilt credentials (takes precedence over access_token).
        """
        if credentials is None:
            if not access_token:
                raise ValueError("Google Calendar access token is required.")
            credentials = Credentials(token=access_token, scopes=SCOPES)
        self.calendar_id = calendar_id or os.getenv("GOOGLE_CALENDAR_ID", "primary")
        self.creds = credentials
        self.service = build("calendar", "v3", credentials=credentials, cache_discovery=False)

    def list_events_in_range(self, time_min: datetime, time_max: datetime) -> List[dict]:
        """List single (expanded) events between two instants, ordered by start time.

        Raises:
            CalendarFetchError: If the API call fails
        """
        try:
            response = self.service.events().list(
                calendarId=self.calendar_id,
                timeMin=time_min.isoformat(),
                timeMax=time_max.isoformat(),
                singleEvents=True,
                orderBy="startTime",
                maxResults=CALENDAR_MAX_RESULTS,
            ).execute()
        except HttpError as error:
            raise CalendarFetchError(f"Calendar API error: {error}") from error
        return response.get("items", [])

    def fetch_today_events(self, now: Optional[datetime] = None) -> List[CalendarEvent]:
        """Fetch events in the caller's local "today" window."""
        start, end = local_day_window(now)
        items = self.list_events_in_range(start, end)
        events: List[CalendarEvent] = []
        for item in items:
            try:
                events.append(normalize_event(item))
            except (KeyError, ValueError) as e:
                logger.warning(f"Skipping malformed calendar event: {type(e).__name__}: {str(e)}")
        logger.info(f"Fetched {len(events)} calendar events for {start.date().isoformat()}")
        return events


def fetch_today_events(access_token: str, now: Optional[datetime] = None) -> List[CalendarEvent]:
    """Fetch today's events with a bare access token.

    Raises:
        CalendarFetchError: If the API call fails
    """
    return GoogleCalendarClient(access_token=access_token).fetch_today_events(now)
