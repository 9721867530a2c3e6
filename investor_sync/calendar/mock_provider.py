import json
from datetime import datetime
from pathlib import Path
from typing import List

from investor_sync.calendar.provider import parse_event_time
from investor_sync.calendar.types import Event, Attendee


DATA_PATH = Path(__file__).resolve().parent.parent / "data" / "sample_calendar.json"


def _parse_attendees(raw_list) -> list[Attendee]:
    attendees: list[Attendee] = []
    for a in raw_list or []:
        if not a.get("email"):
            continue
        attendees.append(Attendee(email=a["email"], name=a.get("name")))
    return attendees


class MockCalendarProvider:
    """Serves events from a JSON fixture; handy for local runs without Google credentials."""

    def __init__(self, data_path: Path | None = None) -> None:
        self._path = data_path or DATA_PATH

    def authorize(self) -> None:
        return None

    def list_events(self, time_min: datetime, time_max: datetime) -> List[Event]:
        if not self._path.exists():
            return []
        raw = json.loads(self._path.read_text(encoding="utf-8"))

        events: List[Event] = []
        for e in raw.get("events", []):
            try:
                start = parse_event_time(str(e.get("start", "")))
            except ValueError:
                continue
            if not (time_min <= start <= time_max):
                continue
            events.append(
                Event(
                    id=e.get("id"),
                    subject=e.get("subject", ""),
                    description=e.get("description", ""),
                    start=start,
                    organizer_email=e.get("organizer_email"),
                    attendees=_parse_attendees(e.get("attendees", [])),
                )
            )

        events.sort(key=lambda ev: ev.start)
        return events
