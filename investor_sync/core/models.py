from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator


NOTES_MAX_CHARS = 500

STATUS_INTERESTED = "Interested"
STATUS_FOLLOW_UP = "Follow-up"
STATUS_MEETING_SCHEDULED = "Meeting Scheduled"
STATUS_REJECTED = "Rejected"
STATUS_UNDER_REVIEW = "Under Review"
STATUS_MANUAL_REVIEW = "Manual Review Needed"
STATUS_NEW_CONTACT = "New Contact"

DEFAULT_NEXT_STEP = "Initial outreach"
MANUAL_REVIEW_NEXT_STEP = "Manual review required"


def normalize_email(email: Optional[str]) -> str:
    """Lowercase and trim an address, dropping a leading ``mailto:``."""
    if not email:
        return ""
    value = email.strip().lower()
    if value.startswith("mailto:"):
        value = value[len("mailto:"):]
    return value


class NoteSource(str, Enum):
    PRIMARY_TRANSCRIPT = "PrimaryTranscriptProvider"
    RELAYED_TRANSCRIPT_EMAIL = "RelayedTranscriptEmail"
    GENERIC_EMAIL_SEARCH = "GenericEmailSearch"

    @property
    def is_transcript(self) -> bool:
        return self in (NoteSource.PRIMARY_TRANSCRIPT, NoteSource.RELAYED_TRANSCRIPT_EMAIL)


class NotesResult(BaseModel):
    content: str
    source: NoteSource


class Insight(BaseModel):
    """Structured output of the insight extractor.

    ``degraded`` is set whenever the values are defaults rather than
    something parsed from the model, with ``reason`` saying why.
    """

    status: str
    next_step: str
    notes: str
    degraded: bool = False
    reason: Optional[str] = None


class Contact(BaseModel):
    email: str
    name: str = ""
    status: str = STATUS_NEW_CONTACT
    next_step: str = DEFAULT_NEXT_STEP
    notes: str = ""
    last_meeting: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @field_validator("email")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator("notes")
    @classmethod
    def _bound_notes(cls, value: str) -> str:
        return (value or "")[:NOTES_MAX_CHARS]


class SyncResult(BaseModel):
    """Outcome of one run: a success summary or a single error."""

    success: bool
    run_id: str
    contacts_processed: int = 0
    events_processed: int = 0
    timestamp: datetime
    error: Optional[str] = None
    failed_state: Optional[str] = None
