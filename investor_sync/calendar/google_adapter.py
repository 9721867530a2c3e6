import logging
from datetime import datetime, timezone
from typing import List, Optional

import httpx

from investor_sync.auth.google_auth import CALENDAR_SCOPE, GoogleTokenProvider, service_account_provider
from investor_sync.calendar.provider import parse_event_time
from investor_sync.calendar.types import Attendee, Event
from investor_sync.core.config import AppConfig
from investor_sync.core.errors import AuthError, CalendarError

logger = logging.getLogger(__name__)

CALENDAR_API_BASE_URL = "https://www.googleapis.com/calendar/v3"
PAGE_SIZE = 250
MAX_PAGES = 10


def _rfc3339(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class GoogleCalendarAdapter:
    """Google Calendar adapter that fetches events and normalizes them to Event objects."""

    def __init__(self, token_provider: GoogleTokenProvider, calendar_id: str = "primary", timeout: float = 15.0):
        self.token_provider = token_provider
        self.calendar_id = calendar_id
        self.timeout = timeout

    def authorize(self) -> None:
        self.token_provider.authorize()

    def _normalize_event(self, item: dict) -> Optional[Event]:
        """Normalize a Calendar API event resource; returns None for events without a start."""
        start = item.get("start", {}) or {}
        raw_start = start.get("dateTime") or start.get("date")
        if not raw_start:
            return None

        try:
            start_dt = parse_event_time(raw_start)
        except ValueError:
            logger.warning("Skipping event %s with unparseable start %r", item.get("id"), raw_start)
            return None

        attendees = []
        for attendee in item.get("attendees", []) or []:
            email = attendee.get("email")
            if not email:
                continue
            attendees.append(Attendee(email=email, name=attendee.get("displayName")))

        return Event(
            id=item.get("id"),
            subject=item.get("summary", "") or "",
            description=item.get("description", "") or "",
            start=start_dt,
            organizer_email=(item.get("organizer", {}) or {}).get("email"),
            attendees=attendees,
        )

    def list_events(self, time_min: datetime, time_max: datetime) -> List[Event]:
        """
        Fetch single (expanded) events between time_min and time_max, ordered by start time.

        Raises:
            AuthError: the calendar rejected our credentials
            CalendarError: any other failure
        """
        access_token = self.token_provider.token()
        url = f"{CALENDAR_API_BASE_URL}/calendars/{self.calendar_id}/events"
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }
        params = {
            "timeMin": _rfc3339(time_min),
            "timeMax": _rfc3339(time_max),
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": PAGE_SIZE,
        }

        events: List[Event] = []
        try:
            with httpx.Client(timeout=self.timeout) as client:
                for _ in range(MAX_PAGES):
                    response = client.get(url, headers=headers, params=params)

                    if response.status_code in (401, 403):
                        raise AuthError(
                            f"Google Calendar access denied ({response.status_code}) for {self.calendar_id}",
                            status_code=response.status_code,
                        )
                    if response.status_code != 200:
                        raise CalendarError(
                            f"Google Calendar API error: {response.status_code} {response.text}",
                            status_code=response.status_code,
                        )

                    data = response.json()
                    for item in data.get("items", []):
                        event = self._normalize_event(item)
                        if event is not None:
                            events.append(event)

                    page_token = data.get("nextPageToken")
                    if not page_token:
                        break
                    params["pageToken"] = page_token
        except (AuthError, CalendarError):
            raise
        except httpx.TimeoutException:
            raise CalendarError(f"Google Calendar API timeout after {self.timeout}s")
        except Exception as exc:
            raise CalendarError(f"Google Calendar API error: {exc}")

        return events


def create_google_calendar_adapter(config: AppConfig) -> GoogleCalendarAdapter:
    """Factory function to create GoogleCalendarAdapter from configuration."""
    token_provider = service_account_provider(
        config,
        scopes=[CALENDAR_SCOPE],
        subject=config.google_delegated_user,
        label="calendar",
    )
    return GoogleCalendarAdapter(
        token_provider=token_provider,
        calendar_id=config.calendar_id,
        timeout=config.http_timeout_seconds,
    )
