import os
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from investor_sync.core.models import SyncResult

router = APIRouter()

# Global state for last run tracking
_last_run: Optional[Dict[str, Any]] = None


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def update_last_run(result: SyncResult, trigger: str, duration_ms: Optional[float] = None) -> None:
    """
    Update the last run information.

    Args:
        result: Outcome of the sync run
        trigger: What started the run ('http', 'scheduler', 'cli')
        duration_ms: Optional duration in milliseconds
    """
    global _last_run

    _last_run = {
        "time": _utc_now_iso(),
        "run_id": result.run_id,
        "trigger": trigger,
        "success": result.success,
        "contacts_processed": result.contacts_processed,
        "events_processed": result.events_processed,
    }

    if duration_ms is not None:
        _last_run["duration_ms"] = round(duration_ms, 2)

    if result.error is not None:
        _last_run["error"] = result.error
        _last_run["failed_state"] = result.failed_state


def get_last_run() -> Optional[Dict[str, Any]]:
    """Get the last run information."""
    return _last_run


@router.get("/healthz")
async def health_check() -> JSONResponse:
    """
    Health check endpoint with last sync run information.

    Returns:
        JSON response with status and last run metadata
    """
    response = {
        "status": "ok",
        "timestamp": _utc_now_iso(),
    }

    last_run = get_last_run()
    if last_run:
        response["last_run"] = last_run

    obs_enabled = os.getenv("OBS_ENABLED", "false").lower() == "true"
    response["observability"] = {
        "enabled": obs_enabled,
        "sentry_configured": bool(os.getenv("SENTRY_DSN")),
    }

    return JSONResponse(status_code=200, content=response)
