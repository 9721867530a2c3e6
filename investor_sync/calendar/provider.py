from datetime import datetime, timezone
from typing import List, Protocol

from investor_sync.calendar.types import Event
from investor_sync.core.config import AppConfig


class CalendarProvider(Protocol):
    def authorize(self) -> None:
        """Authenticate against the calendar backend; raise AuthError on failure."""
        ...

    def list_events(self, time_min: datetime, time_max: datetime) -> List[Event]:
        """
        Fetch normalized calendar events starting within [time_min, time_max].

        Start times must be timezone-aware.
        """
        ...


def parse_event_time(value: str) -> datetime:
    """Parse an ISO date or datetime into an aware datetime (UTC when no offset is given)."""
    raw = value.strip()
    if len(raw) == 10:
        parsed = datetime.strptime(raw, "%Y-%m-%d")
    else:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def select_calendar_provider(config: AppConfig) -> CalendarProvider:
    """Factory function to select calendar provider based on CALENDAR_PROVIDER."""
    provider = (config.calendar_provider or "google").lower()

    if provider == "mock":
        from investor_sync.calendar.mock_provider import MockCalendarProvider
        return MockCalendarProvider()
    elif provider == "google":
        from investor_sync.calendar.google_adapter import create_google_calendar_adapter
        return create_google_calendar_adapter(config)
    else:
        raise ValueError(f"Unsupported CALENDAR_PROVIDER: {provider}")
