"""
Note sources, tried in priority order by the NotesResolver.

Each source answers one question: "do you have notes for this contact's
meeting?" It returns a NotesResult or None, and may raise; the resolver
treats a raised error the same as None and moves to the next source.
"""
import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from email.utils import parseaddr
from typing import List, Optional, Protocol

from investor_sync.core.config import DEFAULT_RELAY_SENDER
from investor_sync.core.models import NoteSource, NotesResult, normalize_email
from investor_sync.mail.gmail import MailMessage

logger = logging.getLogger(__name__)

SEARCH_BEFORE = timedelta(days=1)
SEARCH_AFTER = timedelta(days=2)
MIN_BODY_CHARS = 100

GENERIC_TITLE_WORDS = {"meeting", "call", "sync", "intro", "and", "the", "with"}

RELAY_RECAP_TERMS = '("meeting recap" OR summary OR "meeting overview" OR transcript OR "action items" OR notes)'
GENERIC_RECAP_TERMS = '(recap OR summary OR notes OR "meeting notes" OR "action items" OR follow-up OR "next steps")'

RECAP_SUBJECT_RE = re.compile(
    r"recap|summary|notes|follow.?up|action.?items|next.?steps|discussed|meeting.?notes",
    re.IGNORECASE,
)


class TranscriptProvider(Protocol):
    def find_transcript(self, participant_email: str, around: datetime) -> Optional[str]:
        ...


class MailboxSearch(Protocol):
    def search(self, query: str, max_results: int = 10) -> List[str]:
        ...

    def get_message(self, message_id: str) -> MailMessage:
        ...


def title_keywords(meeting_title: Optional[str]) -> List[str]:
    """Distinctive words of a meeting title (longer than 3 chars, not generic)."""
    words = re.findall(r"[\w'&.-]+", meeting_title or "")
    keywords = []
    for word in words:
        word = word.strip(".'-")
        if len(word) > 3 and word.lower() not in GENERIC_TITLE_WORDS and word not in keywords:
            keywords.append(word)
    return keywords


def _epoch(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())


def _window_terms(meeting_time: datetime) -> List[str]:
    return [
        f"after:{_epoch(meeting_time - SEARCH_BEFORE)}",
        f"before:{_epoch(meeting_time + SEARCH_AFTER)}",
    ]


def _title_term(meeting_title: Optional[str]) -> List[str]:
    words = title_keywords(meeting_title)
    return [f"({' OR '.join(words)})"] if words else []


class NoteSourceStrategy(ABC):
    """A single place meeting notes can come from."""

    kind: NoteSource

    @abstractmethod
    def try_resolve(self, contact_email: str, meeting_time: datetime, meeting_title: str) -> Optional[NotesResult]:
        """Return notes for the contact's meeting, or None when this source has nothing."""
        pass


class TranscriptProviderSource(NoteSourceStrategy):
    """Meeting transcripts from the note-taker's API."""

    kind = NoteSource.PRIMARY_TRANSCRIPT

    def __init__(self, provider: TranscriptProvider):
        self.provider = provider

    def try_resolve(self, contact_email: str, meeting_time: datetime, meeting_title: str) -> Optional[NotesResult]:
        text = self.provider.find_transcript(contact_email, meeting_time)
        if not text:
            return None
        return NotesResult(content=text, source=self.kind)


class _MailboxSource(NoteSourceStrategy):
    max_results = 10
    inspect = 3

    def __init__(self, mailbox: MailboxSearch):
        self.mailbox = mailbox

    @abstractmethod
    def build_query(self, contact_email: str, meeting_time: datetime, meeting_title: str) -> str:
        pass

    @abstractmethod
    def accepts(self, message: MailMessage, contact_email: str) -> bool:
        pass

    def try_resolve(self, contact_email: str, meeting_time: datetime, meeting_title: str) -> Optional[NotesResult]:
        email = normalize_email(contact_email)
        query = self.build_query(email, meeting_time, meeting_title)
        logger.debug("%s query: %s", self.kind.value, query)

        message_ids = self.mailbox.search(query, max_results=self.max_results)
        if not message_ids:
            logger.info("No %s messages for %s", self.kind.value, email)
            return None

        for message_id in message_ids[:self.inspect]:
            try:
                message = self.mailbox.get_message(message_id)
            except Exception as exc:
                logger.warning("Error reading message %s for %s: %s", message_id, email, exc)
                continue

            if not self.accepts(message, email):
                continue
            if len(message.body) <= MIN_BODY_CHARS:
                continue

            logger.info("Found %s message for %s: %s", self.kind.value, email, message.subject)
            return NotesResult(content=message.as_notes(), source=self.kind)

        return None


class RelayedTranscriptEmailSource(_MailboxSource):
    """Recap emails the note-taker's bot sends to the mailbox after a meeting."""

    kind = NoteSource.RELAYED_TRANSCRIPT_EMAIL
    max_results = 5
    inspect = 2

    def __init__(self, mailbox: MailboxSearch, relay_sender: str = DEFAULT_RELAY_SENDER):
        super().__init__(mailbox)
        self.relay_sender = normalize_email(relay_sender)

    def build_query(self, contact_email: str, meeting_time: datetime, meeting_title: str) -> str:
        terms = [f"from:{self.relay_sender}", *_window_terms(meeting_time), RELAY_RECAP_TERMS]
        if contact_email:
            terms.append(contact_email)
        terms.extend(_title_term(meeting_title))
        return " ".join(terms)

    def accepts(self, message: MailMessage, contact_email: str) -> bool:
        # the search operator alone is not trusted for sender identity
        _, address = parseaddr(message.sender or "")
        return normalize_email(address) == self.relay_sender


class GenericEmailSearchSource(_MailboxSource):
    """Any recap-looking thread with the contact around the meeting date."""

    kind = NoteSource.GENERIC_EMAIL_SEARCH
    max_results = 10
    inspect = 3

    def build_query(self, contact_email: str, meeting_time: datetime, meeting_title: str) -> str:
        terms = [
            f"{{from:{contact_email} to:{contact_email}}}",
            GENERIC_RECAP_TERMS,
            *_window_terms(meeting_time),
        ]
        terms.extend(_title_term(meeting_title))
        return " ".join(terms)

    def accepts(self, message: MailMessage, contact_email: str) -> bool:
        is_recap = bool(RECAP_SUBJECT_RE.search(message.subject or ""))
        from_contact = contact_email in (message.sender or "").lower()
        return is_recap or from_contact
