"""
POST /sync: run one calendar-to-CRM sync and return the run summary.
Requires the X-Cron-Secret header (or ``cronSecret`` in the JSON body)
matching CRON_SECRET.
"""
import hmac
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from investor_sync.core.config import load_config
from investor_sync.core.errors import SyncAlreadyRunning
from investor_sync.observability.logger import timing
from investor_sync.routes.health import update_last_run
from investor_sync.sync.orchestrator import execute_sync, get_run_guard

logger = logging.getLogger(__name__)

router = APIRouter()


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


async def _provided_secret(request: Request) -> Optional[str]:
    header = request.headers.get("x-cron-secret")
    if header:
        return header
    try:
        body = await request.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("cronSecret")
    return None


def _secret_matches(provided: Optional[str], expected: Optional[str]) -> bool:
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


@router.post("/sync")
async def run_sync(request: Request) -> JSONResponse:
    cfg = load_config()
    if not _secret_matches(await _provided_secret(request), cfg.cron_secret):
        logger.warning("Rejected /sync call with missing or invalid cron secret")
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})

    try:
        with timing("sync_request") as timer:
            result = await run_in_threadpool(execute_sync, get_run_guard(), cfg)
    except SyncAlreadyRunning as e:
        return JSONResponse(
            status_code=409,
            content={"error": "Sync already running", "message": e.message, "timestamp": _utc_now_iso()},
        )

    update_last_run(result, trigger="http", duration_ms=timer.get_duration_ms())
    timestamp = result.timestamp.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")

    if not result.success:
        return JSONResponse(
            status_code=500,
            content={"error": "Sync failed", "message": result.error, "timestamp": timestamp},
        )

    return JSONResponse(
        status_code=200,
        content={
            "success": True,
            "message": "Sync completed successfully",
            "contactsProcessed": result.contacts_processed,
            "eventsProcessed": result.events_processed,
            "timestamp": timestamp,
        },
    )
