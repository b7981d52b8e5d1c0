"""
Google Calendar integration service for mailmatch.

Fetches events in a date range and exposes their guest lists (the
CalendarGuestSearch capability the resolver consumes).
"""
import logging
from datetime import datetime, timedelta, timezone
from dataclasses import dataclass, field
from typing import Optional

from googleapiclient.discovery import build

from api.services.google_auth import get_google_auth
from api.utils.datetime_utils import make_aware
from config.settings import settings

logger = logging.getLogger(__name__)

# Calendar API page size ceiling
MAX_PAGE_SIZE = 250

# Calendar scans walk backwards from the end of the range in slices of this size
WINDOW_DAYS = 365


@dataclass
class Guest:
    """One attendee of an event."""
    email: str
    display_name: str = ""


@dataclass
class GuestEvent:
    """A calendar event reduced to what guest matching needs."""
    event_id: str
    title: str
    start_time: Optional[datetime]
    guests: list[Guest] = field(default_factory=list)


def parse_guests(raw_attendees: Optional[list]) -> list[Guest]:
    """
    Parse attendees from Google Calendar API response.

    Args:
        raw_attendees: List of attendee dicts from API

    Returns:
        List of Guest objects (attendees without an email are dropped)
    """
    if not raw_attendees:
        return []

    guests = []
    for attendee in raw_attendees:
        email = attendee.get("email", "")
        if not email or attendee.get("resource"):
            continue
        guests.append(Guest(email=email, display_name=attendee.get("displayName", "")))

    return guests


def _start_sort_key(event: GuestEvent) -> datetime:
    return event.start_time or datetime.min.replace(tzinfo=timezone.utc)


class CalendarService:
    """
    Google Calendar service.

    Provides guest-list search over a date range of the primary calendar.
    """

    def __init__(self, max_events: Optional[int] = None):
        """
        Initialize calendar service.

        Args:
            max_events: Cap on events fetched per search (defaults to settings)
        """
        self.max_events = max_events or settings.max_calendar_events
        self._service = None

    @property
    def service(self):
        """Get or create Google Calendar API service."""
        if self._service is None:
            auth = get_google_auth()
            credentials = auth.get_credentials()
            self._service = build("calendar", "v3", credentials=credentials)
        return self._service

    def search_guest_events(
        self,
        start: datetime,
        end: datetime,
        calendar_id: str = "primary"
    ) -> list[GuestEvent]:
        """
        Get events with guests within a date range.

        Args:
            start: Start of range
            end: End of range
            calendar_id: Calendar ID to query

        Returns:
            List of GuestEvent objects that have at least one guest

        Raises:
            Exception: Any API failure is logged and re-raised
        """
        events = self._fetch_events(
            time_min=make_aware(start),
            time_max=make_aware(end),
            calendar_id=calendar_id,
        )
        return [e for e in events if e.guests]

    def _fetch_events(
        self,
        time_min: datetime,
        time_max: datetime,
        calendar_id: str,
    ) -> list[GuestEvent]:
        """
        Fetch events from Google Calendar API, newest window first.

        The range is split into WINDOW_DAYS slices walked backwards from
        time_max, so when max_events is reached it is the oldest events
        that are dropped.

        Args:
            time_min: Start time
            time_max: End time
            calendar_id: Calendar to query

        Returns:
            List of GuestEvent objects, at most self.max_events
        """
        events: list[GuestEvent] = []
        seen_ids: set[str] = set()
        window_end = time_max

        try:
            while window_end > time_min and len(events) < self.max_events:
                window_start = max(time_min, window_end - timedelta(days=WINDOW_DAYS))
                # Events crossing a window boundary are returned by both windows
                for event in self._fetch_window(window_start, window_end, calendar_id):
                    if event.event_id and event.event_id in seen_ids:
                        continue
                    seen_ids.add(event.event_id)
                    events.append(event)
                window_end = window_start

        except Exception as e:
            logger.error(f"Failed to fetch calendar events: {e}")
            raise

        if len(events) >= self.max_events and (len(events) > self.max_events or window_end > time_min):
            logger.warning(
                f"Calendar scan capped at {self.max_events} events; older events were dropped"
            )
            events.sort(key=_start_sort_key, reverse=True)
            events = events[:self.max_events]

        logger.info(f"Fetched {len(events)} calendar events")
        return events

    def _fetch_window(
        self,
        time_min: datetime,
        time_max: datetime,
        calendar_id: str,
    ) -> list[GuestEvent]:
        """Fetch every event of one window, following page tokens."""
        events: list[GuestEvent] = []
        page_token = None

        while True:
            request_params = {
                "calendarId": calendar_id,
                "timeMin": time_min.isoformat(),
                "timeMax": time_max.isoformat(),
                "maxResults": MAX_PAGE_SIZE,
                "singleEvents": True,
                "orderBy": "startTime",
            }
            if page_token:
                request_params["pageToken"] = page_token

            result = self.service.events().list(**request_params).execute()

            for item in result.get("items", []):
                event = self._parse_event(item)
                if event:
                    events.append(event)

            page_token = result.get("nextPageToken")
            if not page_token:
                return events

    def _parse_event(self, item: dict) -> Optional[GuestEvent]:
        """
        Parse a raw API event into GuestEvent.

        Args:
            item: Raw event dict from API

        Returns:
            GuestEvent or None if parsing fails
        """
        try:
            start = item.get("start", {})

            if "dateTime" in start:
                start_time = datetime.fromisoformat(start["dateTime"].replace("Z", "+00:00"))
            elif "date" in start:
                # All-day events use date format
                start_time = datetime.strptime(start["date"], "%Y-%m-%d")
                start_time = start_time.replace(tzinfo=timezone.utc)
            else:
                start_time = None

            return GuestEvent(
                event_id=item.get("id", ""),
                title=item.get("summary", "No Title"),
                start_time=start_time,
                guests=parse_guests(item.get("attendees")),
            )

        except Exception as e:
            logger.warning(f"Failed to parse event: {e}")
            return None


_calendar_service: Optional[CalendarService] = None


def get_calendar_service() -> CalendarService:
    """Get or create the calendar service for the mailbox."""
    global _calendar_service
    if _calendar_service is None:
        _calendar_service = CalendarService()
    return _calendar_service
