"""
Body extraction and cleanup for Gmail message payloads.

Keeps the readable text of a message and drops markup. Output is bounded so
it can be handed straight to the insight extractor.
"""
import base64
import html
import re
from typing import Optional

MAX_BODY_CHARS = 8000

SCRIPT_RE = re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)
STYLE_RE = re.compile(r"<style[^>]*>.*?</style>", re.IGNORECASE | re.DOTALL)
BR_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
PARA_END_RE = re.compile(r"</p\s*>", re.IGNORECASE)
DIV_END_RE = re.compile(r"</div\s*>", re.IGNORECASE)
TAG_RE = re.compile(r"<[^>]+>")
MANY_NEWLINES_RE = re.compile(r"\n{3,}")


def decode_base64url(data: str) -> str:
    """Decode Gmail's URL-safe base64 (padding optional)."""
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8", errors="replace")


def html_to_text(markup: str) -> str:
    text = SCRIPT_RE.sub("", markup)
    text = STYLE_RE.sub("", text)
    text = BR_RE.sub("\n", text)
    text = PARA_END_RE.sub("\n\n", text)
    text = DIV_END_RE.sub("\n", text)
    text = TAG_RE.sub("", text)
    return html.unescape(text).replace("\xa0", " ")


def clean_text(text: str, max_chars: int = MAX_BODY_CHARS) -> str:
    """Normalize line endings, trim lines, collapse blank runs and truncate."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = "\n".join(line.strip() for line in text.split("\n"))
    text = MANY_NEWLINES_RE.sub("\n\n", text)
    return text.strip()[:max_chars]


def _find_part(payload: dict, mime_type: str) -> Optional[str]:
    """Depth-first search for the first part of ``mime_type`` carrying data."""
    if payload.get("mimeType") == mime_type:
        data = (payload.get("body") or {}).get("data")
        if data:
            return decode_base64url(data)

    for part in payload.get("parts", []) or []:
        found = _find_part(part, mime_type)
        if found:
            return found
    return None


def extract_body(payload: dict, max_chars: int = MAX_BODY_CHARS) -> str:
    """
    Pull readable text out of a Gmail ``format=full`` payload.

    Args:
        payload: The message ``payload`` object
        max_chars: Upper bound on the returned text

    Returns:
        Cleaned body text, empty string when nothing readable was found
    """
    if not payload:
        return ""

    body = ""
    top_data = (payload.get("body") or {}).get("data")
    if top_data and not payload.get("parts"):
        body = decode_base64url(top_data)
        if payload.get("mimeType") == "text/html":
            body = html_to_text(body)
    else:
        plain = _find_part(payload, "text/plain")
        if plain:
            body = plain
        else:
            rich = _find_part(payload, "text/html")
            if rich:
                body = html_to_text(rich)

    return clean_text(body, max_chars=max_chars)
