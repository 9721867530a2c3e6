"""
Sync orchestrator: one pass of calendar -> notes -> insights -> contact store.

A run walks these states in order and stops at the first fatal error:

    Idle -> Authorizing -> FetchingEvents -> ProcessingContacts
         -> Persisting -> RecordingCompletion -> Done

Fatal errors (authorization, event fetch, store read/write, completion
marker) end the run in ``Failed`` with nothing written after the failure.
Anything that goes wrong for a single attendee only degrades that contact's
insight.
"""
import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional

from investor_sync.calendar.provider import CalendarProvider
from investor_sync.calendar.selector import DEFAULT_LOOKBACK_DAYS, EventSelector, fetch_relevant_events
from investor_sync.calendar.types import Attendee, Event
from investor_sync.contacts.merger import ContactMerger
from investor_sync.contacts.policy import ExclusionPolicy, name_from_email
from investor_sync.core.config import AppConfig
from investor_sync.core.errors import CalendarError, StoreError, SyncAlreadyRunning, SyncError
from investor_sync.core.models import Insight, SyncResult, normalize_email
from investor_sync.insights.extractor import InsightExtractor, failed_insight
from investor_sync.notes.resolver import NotesResolver
from investor_sync.observability.logger import log_error, log_event, log_info, log_warning, timing
from investor_sync.storage.store import ContactStore

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    IDLE = "idle"
    AUTHORIZING = "authorizing"
    FETCHING_EVENTS = "fetching_events"
    PROCESSING_CONTACTS = "processing_contacts"
    PERSISTING = "persisting"
    RECORDING_COMPLETION = "recording_completion"
    DONE = "done"
    FAILED = "failed"


class RunGuard:
    """Process-wide single-flight lock shared by every sync trigger."""

    def __init__(self):
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def hold(self):
        if not self._lock.acquire(blocking=False):
            raise SyncAlreadyRunning("A sync run is already in progress", status_code=409)
        try:
            yield
        finally:
            self._lock.release()


_run_guard = RunGuard()


def get_run_guard() -> RunGuard:
    return _run_guard


class SyncOrchestrator:
    def __init__(
        self,
        calendar: CalendarProvider,
        selector: EventSelector,
        resolver: NotesResolver,
        extractor: InsightExtractor,
        store: ContactStore,
        policy: ExclusionPolicy,
        lookback_days: int = DEFAULT_LOOKBACK_DAYS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.calendar = calendar
        self.selector = selector
        self.resolver = resolver
        self.extractor = extractor
        self.store = store
        self.policy = policy
        self.lookback_days = lookback_days
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.state = SyncState.IDLE

    def _enter(self, state: SyncState, run_id: str) -> None:
        logger.info("Sync %s: %s -> %s", run_id, self.state.value, state.value)
        self.state = state

    def _insight_for(self, email: str, name: str, event: Event) -> Optional[Insight]:
        """Resolve notes and extract an insight; None when no source had notes."""
        try:
            notes = self.resolver.resolve(email, event.start, event.subject)
            if notes is None:
                logger.info("No notes found for %s on '%s'", email, event.subject)
                return None
            return self.extractor.extract(notes.content, name, notes.source)
        except Exception as exc:
            log_warning("Contact processing failed, insight degraded", {
                "email": email,
                "event_id": event.id,
                "error": str(exc),
            })
            return failed_insight(str(exc))

    def _process_attendee(self, merger: ContactMerger, event: Event, attendee: Attendee) -> None:
        email = normalize_email(attendee.email)
        if self.policy.is_excluded(email):
            logger.debug("Skipping excluded attendee %s", email)
            return

        known = merger.lookup(email)
        name = (known.name if known is not None else "") or attendee.name or name_from_email(email)
        insight = self._insight_for(email, name, event)
        merger.observe(email, event.start, name=attendee.name or name, insight=insight)

    def _process(self, events: List[Event], merger: ContactMerger) -> None:
        for event in events:
            logger.info("Processing event '%s' at %s", event.subject, event.start.isoformat())
            for attendee in event.attendees:
                self._process_attendee(merger, event, attendee)

    def _fail(self, run_id: str, exc: Exception, events_processed: int) -> SyncResult:
        failed_state = self.state
        self.state = SyncState.FAILED
        message = exc.message if isinstance(exc, SyncError) else str(exc)
        log_error(exc, {"run_id": run_id, "failed_state": failed_state.value})
        log_event("sync_failed", run_id, events_processed=events_processed, failed_state=failed_state.value)
        return SyncResult(
            success=False,
            run_id=run_id,
            events_processed=events_processed,
            timestamp=self.clock(),
            error=message,
            failed_state=failed_state.value,
        )

    def run_sync(self, run_id: Optional[str] = None) -> SyncResult:
        """
        Execute one sync run.

        Returns:
            SyncResult with counts on success, or the failing state and error
        """
        run_id = run_id or str(uuid.uuid4())
        started = self.clock()
        events: List[Event] = []
        log_event("sync_started", run_id, lookback_days=self.lookback_days)

        with timing("sync_run") as timer:
            try:
                self._enter(SyncState.AUTHORIZING, run_id)
                self.calendar.authorize()
                self.store.authorize()

                self._enter(SyncState.FETCHING_EVENTS, run_id)
                try:
                    events = fetch_relevant_events(self.calendar, self.selector, self.lookback_days, now=started)
                except SyncError:
                    raise
                except Exception as exc:
                    raise CalendarError(f"Calendar fetch failed: {exc}")

                self._enter(SyncState.PROCESSING_CONTACTS, run_id)
                try:
                    existing = self.store.read_all()
                except SyncError:
                    raise
                except Exception as exc:
                    raise StoreError(f"Contact store read failed: {exc}")

                merger = ContactMerger(existing, self.policy.is_excluded, now=started)
                logger.info("Loaded %d existing contacts", merger.existing_count)
                self._process(events, merger)

                self._enter(SyncState.PERSISTING, run_id)
                if merger.needs_write:
                    self.store.write_all(merger.merged())
                else:
                    log_info("No contacts touched, skipping store write", {"run_id": run_id})

                self._enter(SyncState.RECORDING_COMPLETION, run_id)
                finished = self.clock()
                self.store.record_completion(finished)
            except Exception as exc:
                return self._fail(run_id, exc, len(events))

        self._enter(SyncState.DONE, run_id)
        log_event(
            "sync_completed",
            run_id,
            events_processed=len(events),
            contacts_processed=merger.touched_count,
            duration_ms=timer.get_duration_ms(),
        )
        return SyncResult(
            success=True,
            run_id=run_id,
            contacts_processed=merger.touched_count,
            events_processed=len(events),
            timestamp=finished,
        )


def build_orchestrator(config: AppConfig) -> SyncOrchestrator:
    """Create an orchestrator with fresh dependency handles from configuration."""
    from investor_sync.calendar.provider import select_calendar_provider
    from investor_sync.contacts.policy import build_exclusion_policy
    from investor_sync.llm.service import select_llm_client
    from investor_sync.notes.resolver import build_notes_resolver
    from investor_sync.storage.store import select_contact_store

    policy = build_exclusion_policy(config)
    return SyncOrchestrator(
        calendar=select_calendar_provider(config),
        selector=EventSelector(org_domains=config.org_domains),
        resolver=build_notes_resolver(config),
        extractor=InsightExtractor(select_llm_client(config)),
        store=select_contact_store(config),
        policy=policy,
        lookback_days=config.lookback_days,
    )


def execute_sync(guard: RunGuard, config: Optional[AppConfig] = None) -> SyncResult:
    """
    Run one sync under the guard, building dependencies for this run only.

    Raises:
        SyncAlreadyRunning: another run holds the guard
    """
    from investor_sync.core.config import load_config

    with guard.hold():
        run_id = str(uuid.uuid4())
        config = config or load_config()
        try:
            orchestrator = build_orchestrator(config)
        except (SyncError, ValueError) as exc:
            log_error(exc, {"run_id": run_id, "failed_state": SyncState.AUTHORIZING.value})
            return SyncResult(
                success=False,
                run_id=run_id,
                timestamp=datetime.now(timezone.utc),
                error=getattr(exc, "message", str(exc)),
                failed_state=SyncState.AUTHORIZING.value,
            )
        return orchestrator.run_sync(run_id=run_id)
