from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class Attendee(BaseModel):
    email: str
    name: Optional[str] = None


class Event(BaseModel):
    id: Optional[str] = None
    subject: str = ""
    description: str = ""
    start: datetime
    organizer_email: Optional[str] = None
    attendees: List[Attendee] = []

    @property
    def attendee_emails(self) -> List[str]:
        return [a.email for a in self.attendees if a.email]
