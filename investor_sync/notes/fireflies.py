import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx

from investor_sync.core.errors import NotesSourceError
from investor_sync.core.models import normalize_email

logger = logging.getLogger(__name__)

FIREFLIES_GRAPHQL_URL = "https://api.fireflies.ai/graphql"
TRANSCRIPT_WINDOW = timedelta(days=1)
TRANSCRIPT_LIST_LIMIT = 50

LIST_TRANSCRIPTS_QUERY = """
query GetTranscripts($fromDate: DateTime!, $toDate: DateTime!, $limit: Int) {
  transcripts(fromDate: $fromDate, toDate: $toDate, limit: $limit) {
    id
    title
    date
    participants
  }
}
"""

GET_TRANSCRIPT_QUERY = """
query GetSpecificTranscript($transcriptId: String!) {
  transcript(id: $transcriptId) {
    id
    title
    date
    participants
    sentences {
      text
      speaker_name
    }
  }
}
"""


def _iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def flatten_sentences(sentences: List[Dict[str, Any]]) -> str:
    """Render transcript sentences as ``speaker: text`` lines."""
    lines = []
    for sentence in sentences or []:
        text = (sentence.get("text") or "").strip()
        if not text:
            continue
        speaker = sentence.get("speaker_name") or "Speaker"
        lines.append(f"{speaker}: {text}")
    return "\n".join(lines)


class FirefliesClient:
    """Minimal Fireflies GraphQL client: find a transcript by participant and time."""

    def __init__(self, api_key: str, timeout: float = 15.0):
        self.api_key = api_key
        self.timeout = timeout

    def _query(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    FIREFLIES_GRAPHQL_URL,
                    headers=headers,
                    json={"query": query, "variables": variables},
                )
        except httpx.TimeoutException:
            raise NotesSourceError(f"Fireflies API timeout after {self.timeout}s")
        except httpx.HTTPError as exc:
            raise NotesSourceError(f"Fireflies API error: {exc}")

        if response.status_code != 200:
            raise NotesSourceError(
                f"Fireflies API error: {response.status_code} {response.text}",
                status_code=response.status_code,
            )

        body = response.json()
        if body.get("errors"):
            raise NotesSourceError(f"Fireflies API error: {body['errors']}")
        return body.get("data") or {}

    def find_transcript(self, participant_email: str, around: datetime) -> Optional[str]:
        """
        Find the transcript of a meeting near ``around`` that ``participant_email`` attended.

        Returns:
            Flattened transcript text, or None when no matching transcript exists
        """
        email = normalize_email(participant_email)
        data = self._query(
            LIST_TRANSCRIPTS_QUERY,
            {
                "fromDate": _iso(around - TRANSCRIPT_WINDOW),
                "toDate": _iso(around + TRANSCRIPT_WINDOW),
                "limit": TRANSCRIPT_LIST_LIMIT,
            },
        )

        match = None
        for transcript in data.get("transcripts") or []:
            # entries are sometimes comma-joined lists
            participants = [
                normalize_email(part)
                for p in transcript.get("participants") or []
                if isinstance(p, str)
                for part in p.split(",")
            ]
            if email in participants:
                match = transcript
                break

        if match is None:
            return None

        detail = self._query(GET_TRANSCRIPT_QUERY, {"transcriptId": match["id"]})
        transcript = detail.get("transcript") or {}
        text = flatten_sentences(transcript.get("sentences") or [])
        if not text:
            return None

        logger.info("Retrieved Fireflies transcript for %s - %d chars", email, len(text))
        return text
