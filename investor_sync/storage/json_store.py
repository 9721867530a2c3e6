import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from investor_sync.core.errors import StoreError
from investor_sync.core.models import Contact
from investor_sync.storage.store import contact_to_record, format_timestamp, parse_timestamp, record_to_contact


class JsonContactStore:
    """
    Contact store backed by a single JSON file.

    Layout: ``{"contacts": [...], "lastSync": "<iso>"}``. Writes go to a temp
    file that replaces the original, so a failed write leaves the previous
    state intact.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def authorize(self) -> None:
        return None

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {"contacts": [], "lastSync": None}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as exc:
            raise StoreError(f"Contact store unreadable at {self.path}: {exc}")
        if not isinstance(data, dict):
            raise StoreError(f"Contact store at {self.path} has an unexpected layout")
        return data

    def _save(self, data: Dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), prefix=".contacts-", suffix=".json")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise StoreError(f"Contact store write failed at {self.path}: {exc}")

    def read_all(self) -> List[Contact]:
        rows = self._load().get("contacts") or []
        contacts = []
        for row in rows:
            contact = record_to_contact(row)
            if contact is not None:
                contacts.append(contact)
        return contacts

    def write_all(self, contacts: List[Contact]) -> None:
        data = self._load()
        data["contacts"] = [contact_to_record(c) for c in contacts]
        self._save(data)

    def record_completion(self, timestamp: datetime) -> None:
        data = self._load()
        data["lastSync"] = format_timestamp(timestamp)
        self._save(data)

    def last_sync(self) -> Optional[datetime]:
        return parse_timestamp(self._load().get("lastSync"))
