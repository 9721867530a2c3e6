import logging

from fastapi import APIRouter
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from investor_sync.core.config import load_config
from investor_sync.core.errors import SyncError
from investor_sync.storage.store import contact_to_record, format_timestamp, select_contact_store

logger = logging.getLogger(__name__)

router = APIRouter()


def _read_contacts() -> dict:
    store = select_contact_store(load_config())
    store.authorize()
    contacts = store.read_all()
    last_sync = store.last_sync()
    return {
        "contacts": [contact_to_record(c) for c in contacts],
        "lastSync": format_timestamp(last_sync) or None,
        "total": len(contacts),
    }


@router.get("/contacts")
async def list_contacts() -> JSONResponse:
    """Return the stored contacts and the last successful sync time."""
    try:
        payload = await run_in_threadpool(_read_contacts)
    except (SyncError, ValueError) as e:
        logger.error("Failed to fetch contacts: %s", e)
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to fetch contacts", "message": str(e)},
        )
    return JSONResponse(status_code=200, content=payload)
