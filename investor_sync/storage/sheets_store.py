import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from investor_sync.auth.google_auth import SHEETS_SCOPE, GoogleTokenProvider, service_account_provider
from investor_sync.core.config import AppConfig
from investor_sync.core.errors import AuthError, StoreError
from investor_sync.core.models import Contact
from investor_sync.storage.store import format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

SHEETS_API_BASE_URL = "https://sheets.googleapis.com/v4/spreadsheets"

CONTACTS_RANGE = "Contacts!A:G"
SYNC_RANGE = "Contacts!H1"
HEADER = ["Name", "Email", "Status", "Next Step", "Notes", "Last Meeting", "Created At"]


def contact_to_row(contact: Contact) -> List[str]:
    return [
        contact.name,
        contact.email,
        contact.status,
        contact.next_step,
        contact.notes,
        format_timestamp(contact.last_meeting),
        format_timestamp(contact.created_at),
    ]


def row_to_contact(row: List[Any]) -> Optional[Contact]:
    """Map one sheet row to a Contact; rows without an email are skipped."""
    cells = [str(c) if c is not None else "" for c in row] + [""] * (len(HEADER) - len(row))
    name, email, status, next_step, notes, last_meeting, created_at = cells[:len(HEADER)]
    if not email.strip():
        return None
    return Contact(
        email=email,
        name=name.strip(),
        status=status.strip(),
        next_step=next_step.strip(),
        notes=notes,
        last_meeting=parse_timestamp(last_meeting),
        created_at=parse_timestamp(created_at),
    )


class GoogleSheetsContactStore:
    """
    Contact store on a Google spreadsheet.

    Contacts live in ``Contacts!A:G`` under a header row; the last successful
    sync time lives beside them in ``Contacts!H1``, outside the contact
    columns, so the store needs no tab other than ``Contacts``. ``write_all``
    rewrites the whole range in a single values update. When the new list is
    shorter than what was read, the tail is overwritten with blank rows rather
    than cleared in a separate call.
    """

    def __init__(self, token_provider: GoogleTokenProvider, sheet_id: str, timeout: float = 15.0):
        self.token_provider = token_provider
        self.sheet_id = sheet_id
        self.timeout = timeout
        self._rows_read = 0

    def authorize(self) -> None:
        self.token_provider.authorize()

    def _request(self, method: str, value_range: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        access_token = self.token_provider.token()
        url = f"{SHEETS_API_BASE_URL}/{self.sheet_id}/values/{value_range}"
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }
        params = {"valueInputOption": "RAW"} if method == "PUT" else None

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.request(method, url, headers=headers, params=params, json=payload)
        except httpx.TimeoutException:
            raise StoreError(f"Google Sheets API timeout after {self.timeout}s ({value_range})")
        except httpx.HTTPError as exc:
            raise StoreError(f"Google Sheets API error ({value_range}): {exc}")

        if response.status_code in (401, 403):
            raise AuthError(
                f"Google Sheets access denied ({response.status_code}) for {self.sheet_id}",
                status_code=response.status_code,
            )
        if response.status_code != 200:
            raise StoreError(
                f"Google Sheets API error: {response.status_code} {response.text}",
                status_code=response.status_code,
            )
        return response.json()

    def read_all(self) -> List[Contact]:
        rows = self._request("GET", CONTACTS_RANGE).get("values", []) or []
        self._rows_read = len(rows)

        contacts = []
        for row in rows[1:]:
            contact = row_to_contact(row)
            if contact is not None:
                contacts.append(contact)
        logger.info("Read %d contacts from sheet %s", len(contacts), self.sheet_id)
        return contacts

    def write_all(self, contacts: List[Contact]) -> None:
        values = [HEADER] + [contact_to_row(c) for c in contacts]
        padding = self._rows_read - len(values)
        if padding > 0:
            values.extend([[""] * len(HEADER) for _ in range(padding)])

        self._request("PUT", CONTACTS_RANGE, {
            "range": CONTACTS_RANGE,
            "majorDimension": "ROWS",
            "values": values,
        })
        self._rows_read = len(values)
        logger.info("Wrote %d contacts to sheet %s", len(contacts), self.sheet_id)

    def record_completion(self, timestamp: datetime) -> None:
        self._request("PUT", SYNC_RANGE, {
            "range": SYNC_RANGE,
            "majorDimension": "ROWS",
            "values": [[format_timestamp(timestamp)]],
        })

    def last_sync(self) -> Optional[datetime]:
        rows = self._request("GET", SYNC_RANGE).get("values", []) or []
        if not rows or not rows[0]:
            return None
        return parse_timestamp(rows[0][0])


def create_sheets_contact_store(config: AppConfig) -> GoogleSheetsContactStore:
    """Factory function to create GoogleSheetsContactStore from configuration."""
    if not config.google_sheet_id:
        raise StoreError("GOOGLE_SHEET_ID is required for the sheets contact store")

    token_provider = service_account_provider(config, scopes=[SHEETS_SCOPE], label="sheets")
    return GoogleSheetsContactStore(
        token_provider=token_provider,
        sheet_id=config.google_sheet_id,
        timeout=config.http_timeout_seconds,
    )
