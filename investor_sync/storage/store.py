import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from investor_sync.core.config import AppConfig
from investor_sync.core.models import Contact

logger = logging.getLogger(__name__)


class ContactStore(Protocol):
    def authorize(self) -> None:
        ...

    def read_all(self) -> List[Contact]:
        ...

    def write_all(self, contacts: List[Contact]) -> None:
        """Replace the stored contacts in one call."""
        ...

    def record_completion(self, timestamp: datetime) -> None:
        ...

    def last_sync(self) -> Optional[datetime]:
        ...


def format_timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored ISO date/datetime; blank or unparseable values become None."""
    if not value or not str(value).strip():
        return None
    raw = str(value).strip()
    try:
        if len(raw) == 10:
            parsed = datetime.strptime(raw, "%Y-%m-%d")
        else:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparseable stored timestamp %r, treating as empty", raw)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def contact_to_record(contact: Contact) -> Dict[str, Any]:
    """Camel-cased JSON shape used by the file store and the contacts endpoint."""
    return {
        "name": contact.name,
        "email": contact.email,
        "status": contact.status,
        "nextStep": contact.next_step,
        "notes": contact.notes,
        "lastMeeting": format_timestamp(contact.last_meeting),
        "createdAt": format_timestamp(contact.created_at),
    }


def record_to_contact(record: Dict[str, Any]) -> Optional[Contact]:
    if not record.get("email"):
        return None
    return Contact(
        email=record["email"],
        name=record.get("name") or "",
        status=record.get("status") or "",
        next_step=record.get("nextStep") or "",
        notes=record.get("notes") or "",
        last_meeting=parse_timestamp(record.get("lastMeeting")),
        created_at=parse_timestamp(record.get("createdAt")),
    )


def select_contact_store(config: AppConfig) -> ContactStore:
    """Factory function to select the contact store based on CONTACT_STORE."""
    backend = (config.contact_store or "sheets").lower()

    if backend == "json":
        from investor_sync.storage.json_store import JsonContactStore
        return JsonContactStore(config.contact_store_path)
    elif backend == "sheets":
        from investor_sync.storage.sheets_store import create_sheets_contact_store
        return create_sheets_contact_store(config)
    else:
        raise ValueError(f"Unsupported CONTACT_STORE: {backend}")
