"""
Contact merging for one sync run.

The merger holds the store contents read at the start of the run plus every
observation made while walking the events, and folds them into one record
per email:

- ``last_meeting`` only ever moves forward (max wins, across store and run).
- status / next step / notes come from the most recent insight of the run,
  in event order; a contact without an insight keeps its stored values.
- ``created_at`` is written once, for contacts first seen in this run.
- excluded addresses are dropped on the way in and on the way out.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional

from investor_sync.contacts.policy import name_from_email
from investor_sync.core.models import (
    Contact,
    DEFAULT_NEXT_STEP,
    Insight,
    NOTES_MAX_CHARS,
    STATUS_NEW_CONTACT,
    normalize_email,
)

logger = logging.getLogger(__name__)


def later(a: Optional[datetime], b: Optional[datetime]) -> Optional[datetime]:
    if a is None:
        return b
    if b is None:
        return a
    return b if b > a else a


def earlier(a: Optional[datetime], b: Optional[datetime]) -> Optional[datetime]:
    if a is None:
        return b
    if b is None:
        return a
    return b if b < a else a


@dataclass
class Observation:
    email: str
    last_meeting: Optional[datetime] = None
    name: Optional[str] = None
    insight: Optional[Insight] = None


def dedupe_contacts(contacts: List[Contact], is_excluded: Callable[[str], bool]) -> Dict[str, Contact]:
    """
    Collapse stored rows to one per email, keeping first-seen order.

    The row with the latest ``last_meeting`` wins; the earliest ``created_at``
    across duplicates is kept.
    """
    unique: Dict[str, Contact] = {}
    for contact in contacts:
        email = normalize_email(contact.email)
        if not email or is_excluded(email):
            continue

        current = unique.get(email)
        if current is None:
            unique[email] = contact
            continue

        logger.info("Duplicate store rows for %s, collapsing", email)
        contact_is_newer = contact.last_meeting is not None and (
            current.last_meeting is None or contact.last_meeting > current.last_meeting
        )
        winner = contact if contact_is_newer else current
        unique[email] = winner.model_copy(update={
            "created_at": earlier(current.created_at, contact.created_at),
            "last_meeting": later(current.last_meeting, contact.last_meeting),
        })
    return unique


class ContactMerger:
    """Accumulates a run's observations on top of the existing store contents."""

    def __init__(self, existing: List[Contact], is_excluded: Callable[[str], bool], now: datetime):
        self.is_excluded = is_excluded
        self.now = now
        self._existing = dedupe_contacts(existing, is_excluded)
        self._dropped = len(existing) - len(self._existing)
        self._observations: Dict[str, Observation] = {}

    @property
    def existing_count(self) -> int:
        return len(self._existing)

    @property
    def dropped_count(self) -> int:
        """Stored rows removed as excluded, blank or duplicate."""
        return self._dropped

    @property
    def needs_write(self) -> bool:
        return self.touched_count > 0 or self._dropped > 0

    @property
    def touched_count(self) -> int:
        """Number of distinct contacts observed during this run."""
        return len(self._observations)

    def lookup(self, email: str) -> Optional[Contact]:
        """Current merged view of one contact, or None if it is neither stored nor observed."""
        key = normalize_email(email)
        if key in self._observations:
            return self._apply(self._existing.get(key), self._observations[key])
        return self._existing.get(key)

    def observe(
        self,
        email: str,
        meeting_time: Optional[datetime],
        name: Optional[str] = None,
        insight: Optional[Insight] = None,
    ) -> bool:
        """
        Record one sighting of ``email`` on a meeting.

        Returns:
            False when the address is excluded and nothing was recorded
        """
        key = normalize_email(email)
        if not key or self.is_excluded(key):
            logger.debug("Skipping excluded email: %s", email)
            return False

        observation = self._observations.get(key)
        if observation is None:
            observation = Observation(email=key)
            self._observations[key] = observation

        observation.last_meeting = later(observation.last_meeting, meeting_time)
        if name and not observation.name:
            observation.name = name
        if insight is not None:
            observation.insight = insight
        return True

    def _apply(self, stored: Optional[Contact], observation: Observation) -> Contact:
        if stored is None:
            contact = Contact(
                email=observation.email,
                name=observation.name or name_from_email(observation.email),
                status=STATUS_NEW_CONTACT,
                next_step=DEFAULT_NEXT_STEP,
                notes="",
                last_meeting=observation.last_meeting,
                created_at=self.now,
            )
        else:
            contact = stored.model_copy(update={
                "name": stored.name or observation.name or name_from_email(observation.email),
                "last_meeting": later(stored.last_meeting, observation.last_meeting),
                "created_at": stored.created_at or self.now,
            })

        if observation.insight is not None:
            contact = contact.model_copy(update={
                "status": observation.insight.status,
                "next_step": observation.insight.next_step,
                "notes": observation.insight.notes[:NOTES_MAX_CHARS],
            })
        return contact

    def merged(self) -> List[Contact]:
        """
        Final contact list for whole-range persistence.

        Stored contacts keep their order (updated where observed); contacts
        first seen in this run follow in first-seen order.
        """
        result: List[Contact] = []
        for email, stored in self._existing.items():
            observation = self._observations.get(email)
            result.append(self._apply(stored, observation) if observation else stored)

        for email, observation in self._observations.items():
            if email not in self._existing:
                result.append(self._apply(None, observation))

        return [c for c in result if not self.is_excluded(c.email)]
