"""
Event selection for the sync run.

The relevance policy is intentionally permissive: a business-looking
attendee alone is enough to keep an event. Notes resolution and the insight
extractor filter the noise further downstream.
"""
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from investor_sync.calendar.provider import CalendarProvider
from investor_sync.calendar.types import Event
from investor_sync.core.models import normalize_email

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK_DAYS = 60

INVESTMENT_KEYWORDS = [
    "investor", "pitch", "intro", "funding", "vc", "investment", "demo",
    "meeting", "capital", "ventures", "fund", "consultation", "session",
    "call", "sync", "discussion",
]

VENTURE_PATTERNS = [
    re.compile(r"ventures?", re.IGNORECASE),
    re.compile(r"capital", re.IGNORECASE),
    re.compile(r"\bfund\b", re.IGNORECASE),
    re.compile(r"partners?", re.IGNORECASE),
    re.compile(r"investments?", re.IGNORECASE),
    re.compile(r"\.vc", re.IGNORECASE),
    # fund and firm names glued into an address, e.g. amy@seedfund.com
    re.compile(r"@.*(?:ventures|capital|fund)", re.IGNORECASE),
]

CONSUMER_MAIL_DOMAINS = [
    "gmail.com", "googlemail.com", "yahoo.com", "hotmail.com", "outlook.com",
    "live.com", "icloud.com", "me.com", "aol.com", "proton.me", "protonmail.com",
]


@dataclass
class RelevanceDecision:
    keyword: bool
    venture_pattern: bool
    business_attendee: bool

    @property
    def included(self) -> bool:
        return self.keyword or self.venture_pattern or self.business_attendee


def _domain_of(email: str) -> str:
    return email.rsplit("@", 1)[1] if "@" in email else ""


def _domain_matches(domain: str, candidates: Iterable[str]) -> bool:
    return any(domain == c or domain.endswith("." + c) for c in candidates)


class EventSelector:
    """Decides which calendar events look like investor-relations meetings."""

    def __init__(self, org_domains: Optional[List[str]] = None, consumer_domains: Optional[List[str]] = None):
        self.org_domains = [d.lower() for d in (org_domains or [])]
        self.consumer_domains = [d.lower() for d in (consumer_domains or CONSUMER_MAIL_DOMAINS)]

    def _has_keyword(self, title: str, description: str) -> bool:
        return any(k in title or k in description for k in INVESTMENT_KEYWORDS)

    def _has_venture_pattern(self, texts: List[str]) -> bool:
        return any(p.search(text) for p in VENTURE_PATTERNS for text in texts if text)

    def _is_business_attendee(self, email: str) -> bool:
        domain = _domain_of(email)
        if not domain:
            return False
        return not _domain_matches(domain, self.org_domains) and not _domain_matches(domain, self.consumer_domains)

    def evaluate(self, event: Event) -> RelevanceDecision:
        title = (event.subject or "").lower()
        description = (event.description or "").lower()
        attendee_emails = [normalize_email(e) for e in event.attendee_emails]
        organizer = normalize_email(event.organizer_email)

        return RelevanceDecision(
            keyword=self._has_keyword(title, description),
            venture_pattern=self._has_venture_pattern([title, description, organizer, *attendee_emails]),
            business_attendee=any(self._is_business_attendee(e) for e in attendee_emails),
        )

    def select(self, events: List[Event]) -> List[Event]:
        """Keep relevant events, ordered by start time (stable, no dedup)."""
        selected = []
        for event in events:
            decision = self.evaluate(event)
            logger.debug(
                "Event %r: %s (keyword=%s venture=%s business=%s)",
                event.subject or "No Summary",
                "INCLUDED" if decision.included else "FILTERED OUT",
                decision.keyword,
                decision.venture_pattern,
                decision.business_attendee,
            )
            if decision.included:
                selected.append(event)
        return sorted(selected, key=lambda e: e.start)


def fetch_relevant_events(
    provider: CalendarProvider,
    selector: EventSelector,
    lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    now: Optional[datetime] = None,
) -> List[Event]:
    """
    Fetch events in the trailing window and keep the relevant ones.

    Args:
        provider: Calendar backend
        selector: Relevance policy
        lookback_days: Size of the trailing window in days
        now: End of the window; defaults to the current UTC time

    Returns:
        Relevant events in ascending start order
    """
    time_max = now or datetime.now(timezone.utc)
    time_min = time_max - timedelta(days=lookback_days)

    events = provider.list_events(time_min, time_max)
    logger.info("Found %d calendar events between %s and %s", len(events), time_min.isoformat(), time_max.isoformat())

    selected = selector.select(events)
    logger.info("Events after relevance filtering: %d", len(selected))
    return selected
