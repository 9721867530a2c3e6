from typing import Optional


class SyncError(Exception):
    """Base class for errors raised by the sync pipeline and its adapters."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthError(SyncError):
    """Credentials missing or rejected by a dependency."""


class CalendarError(SyncError):
    """Calendar events could not be fetched."""


class StoreError(SyncError):
    """The contact store could not be read or written."""


class NotesSourceError(SyncError):
    """A note source failed; the resolver moves on to the next one."""


class LLMServiceError(SyncError):
    """The language-model service failed or returned nothing usable."""


class SyncAlreadyRunning(SyncError):
    """Another run holds the run guard."""
