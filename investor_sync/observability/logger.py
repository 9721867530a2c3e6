import os
import time
import json
import logging
from contextlib import contextmanager
from typing import Dict, Any, Optional
from datetime import datetime, timezone

import sentry_sdk

logger = logging.getLogger(__name__)


class TimingContext:
    """Context manager for timing operations."""

    def __init__(self, operation_name: str):
        self.operation_name = operation_name
        self.start_time: Optional[float] = None
        self.duration_ms: Optional[float] = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is not None:
            self.duration_ms = (time.time() - self.start_time) * 1000

    def get_duration_ms(self) -> Optional[float]:
        """Get duration in milliseconds."""
        return self.duration_ms


@contextmanager
def timing(operation_name: str):
    """Context manager for timing operations."""
    context = TimingContext(operation_name)
    with context:
        yield context


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def log_event(
    action: str,
    run_id: str,
    events_processed: Optional[int] = None,
    contacts_processed: Optional[int] = None,
    duration_ms: Optional[float] = None,
    **kwargs
) -> None:
    """
    Log a structured sync run event.

    Args:
        action: What happened (e.g. 'sync_started', 'sync_completed', 'sync_failed')
        run_id: Identifier of the run the event belongs to
        events_processed: Optional number of relevant events seen
        contacts_processed: Optional number of contacts touched
        duration_ms: Optional duration in milliseconds
        **kwargs: Additional fields to include in the log
    """
    log_entry = {
        "timestamp": _utc_now_iso(),
        "action": action,
        "run_id": run_id,
    }

    if events_processed is not None:
        log_entry["events_processed"] = events_processed

    if contacts_processed is not None:
        log_entry["contacts_processed"] = contacts_processed

    if duration_ms is not None:
        log_entry["duration_ms"] = round(duration_ms, 2)

    log_entry.update({k: _sanitize_value(k, v) for k, v in kwargs.items()})

    logger.info(json.dumps(log_entry, separators=(',', ':'), default=str))


SENSITIVE_KEYS = ("secret", "key", "token", "password", "credential", "authorization")


def _sanitize_value(key: str, value: Any) -> Any:
    """
    Redact values whose key looks like it carries a credential.

    Args:
        key: Field name
        value: Field value

    Returns:
        The value, or "[REDACTED]" for credential-like keys
    """
    lowered = key.lower()
    if any(marker in lowered for marker in SENSITIVE_KEYS):
        return "[REDACTED]"
    if isinstance(value, str) and len(value) > 300:
        return value[:297] + "..."
    return value


def init_sentry() -> bool:
    """
    Initialize Sentry if enabled and DSN is provided.

    Returns:
        True if Sentry was initialized, False otherwise
    """
    if not os.getenv("OBS_ENABLED", "false").lower() == "true":
        return False

    sentry_dsn = os.getenv("SENTRY_DSN")
    if not sentry_dsn:
        logger.info("Sentry DSN not provided, skipping Sentry initialization")
        return False

    try:
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        from sentry_sdk.integrations.logging import LoggingIntegration

        sentry_sdk.init(
            dsn=sentry_dsn,
            integrations=[
                FastApiIntegration(),
                LoggingIntegration(
                    level=logging.INFO,
                    event_level=logging.ERROR
                ),
            ],
            traces_sample_rate=0.1,
            environment=os.getenv("ENVIRONMENT", "development"),
        )

        logger.info("Sentry initialized successfully")
        return True

    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}")
        return False


def log_error(error: Exception, context: Dict[str, Any] = None) -> None:
    """
    Log an error with optional context.

    Args:
        error: The exception to log
        context: Optional context dictionary
    """
    log_entry = {
        "timestamp": _utc_now_iso(),
        "level": "ERROR",
        "error": str(error),
        "error_type": type(error).__name__,
    }

    if context:
        log_entry.update({k: _sanitize_value(k, v) for k, v in context.items()})

    logger.error(json.dumps(log_entry, separators=(',', ':'), default=str))


def log_warning(message: str, context: Dict[str, Any] = None) -> None:
    """
    Log a warning with optional context.

    Args:
        message: The warning message
        context: Optional context dictionary
    """
    log_entry = {
        "timestamp": _utc_now_iso(),
        "level": "WARNING",
        "message": message,
    }

    if context:
        log_entry.update({k: _sanitize_value(k, v) for k, v in context.items()})

    logger.warning(json.dumps(log_entry, separators=(',', ':'), default=str))


def log_info(message: str, context: Dict[str, Any] = None) -> None:
    """
    Log an info message with optional context.

    Args:
        message: The info message
        context: Optional context dictionary
    """
    log_entry = {
        "timestamp": _utc_now_iso(),
        "level": "INFO",
        "message": message,
    }

    if context:
        log_entry.update({k: _sanitize_value(k, v) for k, v in context.items()})

    logger.info(json.dumps(log_entry, separators=(',', ':'), default=str))
