import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import httpx

from investor_sync.auth.google_auth import (
    GMAIL_SCOPE,
    GoogleTokenProvider,
    load_user_token_provider,
    service_account_provider,
)
from investor_sync.core.config import AppConfig
from investor_sync.core.errors import AuthError, NotesSourceError
from investor_sync.mail.body import extract_body

logger = logging.getLogger(__name__)

GMAIL_API_BASE_URL = "https://gmail.googleapis.com/gmail/v1"
GMAIL_USER_ID = "me"


@dataclass
class MailMessage:
    id: str
    subject: str
    sender: str
    body: str
    headers: Dict[str, str]

    def as_notes(self) -> str:
        return f"Subject: {self.subject}\nFrom: {self.sender}\n\n{self.body}"


def _headers_to_dict(raw_headers: List[dict]) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    for header in raw_headers or []:
        name = (header.get("name") or "").lower()
        if name and name not in headers:
            headers[name] = header.get("value") or ""
    return headers


class GmailClient:
    """Read-only Gmail search client used by the email note sources."""

    def __init__(self, token_provider: GoogleTokenProvider, timeout: float = 15.0):
        self.token_provider = token_provider
        self.timeout = timeout

    def _get(self, path: str, params: dict) -> dict:
        access_token = self.token_provider.token()
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }
        url = f"{GMAIL_API_BASE_URL}/users/{GMAIL_USER_ID}/{path}"

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.get(url, headers=headers, params=params)
        except httpx.TimeoutException:
            raise NotesSourceError(f"Gmail API timeout after {self.timeout}s")
        except httpx.HTTPError as exc:
            raise NotesSourceError(f"Gmail API error: {exc}")

        if response.status_code in (401, 403):
            raise AuthError(f"Gmail access denied ({response.status_code})", status_code=response.status_code)
        if response.status_code != 200:
            raise NotesSourceError(
                f"Gmail API error: {response.status_code} {response.text}",
                status_code=response.status_code,
            )
        return response.json()

    def search(self, query: str, max_results: int = 10) -> List[str]:
        """Return message ids matching a Gmail search query, newest first."""
        data = self._get("messages", {"q": query, "maxResults": max_results})
        return [m["id"] for m in data.get("messages", []) or [] if m.get("id")]

    def get_message(self, message_id: str) -> MailMessage:
        data = self._get(f"messages/{message_id}", {"format": "full"})
        payload = data.get("payload", {}) or {}
        headers = _headers_to_dict(payload.get("headers", []))
        return MailMessage(
            id=message_id,
            subject=headers.get("subject", ""),
            sender=headers.get("from", ""),
            body=extract_body(payload),
            headers=headers,
        )


def create_gmail_client(config: AppConfig) -> Optional[GmailClient]:
    """
    Build a Gmail client from stored OAuth tokens, falling back to the service account.

    Returns None when neither credential source is configured; the email
    note sources are then skipped.
    """
    token_provider = load_user_token_provider(config)
    if token_provider is None:
        if not config.google_service_email or not config.google_private_key:
            logger.info("No Gmail credentials configured, email note sources disabled")
            return None
        token_provider = service_account_provider(
            config,
            scopes=[GMAIL_SCOPE],
            subject=config.google_delegated_user,
            label="gmail",
        )
    return GmailClient(token_provider, timeout=config.http_timeout_seconds)
