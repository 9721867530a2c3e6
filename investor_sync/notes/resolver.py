import logging
from datetime import datetime
from typing import List, Optional

from investor_sync.core.config import AppConfig
from investor_sync.core.models import NotesResult
from investor_sync.mail.body import clean_text
from investor_sync.notes.sources import (
    GenericEmailSearchSource,
    NoteSourceStrategy,
    RelayedTranscriptEmailSource,
    TranscriptProviderSource,
)
from investor_sync.observability.logger import log_warning

logger = logging.getLogger(__name__)


class NotesResolver:
    """Tries each note source in order and returns the first hit."""

    def __init__(self, sources: List[NoteSourceStrategy]):
        self.sources = list(sources)

    def resolve(self, contact_email: str, meeting_time: datetime, meeting_title: str) -> Optional[NotesResult]:
        """
        Find notes for one contact's meeting.

        Source failures are logged and never propagate; only exhausting every
        source yields None.
        """
        for source in self.sources:
            try:
                result = source.try_resolve(contact_email, meeting_time, meeting_title or "")
            except Exception as exc:
                log_warning("Note source failed", {
                    "source": source.kind.value,
                    "email": contact_email,
                    "error": str(exc),
                })
                continue

            if result is not None:
                result = result.model_copy(update={"content": clean_text(result.content)})
            if result is not None and result.content:
                logger.info("Found notes for %s from %s", contact_email, result.source.value)
                return result

        logger.info("No notes found for %s", contact_email)
        return None


def build_notes_resolver(config: AppConfig) -> NotesResolver:
    """Wire the note sources available under the current configuration, in priority order."""
    from investor_sync.mail.gmail import create_gmail_client
    from investor_sync.notes.fireflies import FirefliesClient

    sources: List[NoteSourceStrategy] = []

    if config.fireflies_api_key:
        sources.append(TranscriptProviderSource(
            FirefliesClient(config.fireflies_api_key, timeout=config.http_timeout_seconds)
        ))
    else:
        logger.info("FIREFLIES_API_KEY not configured, transcript source disabled")

    try:
        mailbox = create_gmail_client(config)
    except Exception as exc:
        logger.warning("Gmail client unavailable, email note sources disabled: %s", exc)
        mailbox = None

    if mailbox is not None:
        sources.append(RelayedTranscriptEmailSource(mailbox, relay_sender=config.transcript_relay_sender))
        sources.append(GenericEmailSearchSource(mailbox))

    return NotesResolver(sources)
