"""
Insight extraction: turn free-text meeting notes into {status, nextStep, notes}.

Model output is treated as untrusted input. Every failure path ends in a
degraded Insight instead of an exception, so a bad response can only ever
cost one contact its analysis.
"""
import json
import logging
import re
from typing import Any, Dict, Optional

from investor_sync.core.models import (
    Insight,
    MANUAL_REVIEW_NEXT_STEP,
    NOTES_MAX_CHARS,
    NoteSource,
    STATUS_MANUAL_REVIEW,
    STATUS_UNDER_REVIEW,
)
from investor_sync.llm.service import LLMClient

logger = logging.getLogger(__name__)

MIN_CONTENT_CHARS = 20
PROMPT_CONTENT_CHARS = 7000
PROMPT_NOTES_CHARS = 300

MISSING_NOTES = "AI notes missing."

CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

TRANSCRIPT_PROMPT = """Analyze this meeting transcript content for an investor CRM. Contact: {name}.
Extract:
1. Investment interest/sentiment (e.g., 'Interested', 'Follow-up', 'Rejected').
2. Specific next actions/commitments.
3. Key concerns, requirements, objections.
4. Decision timelines or funding amounts.
5. Other critical CRM notes.
Output JSON: {{"status": "...", "nextStep": "...", "notes": "..."}} (combine 3, 4, 5 into notes, max {notes_chars} chars).
Content (max {content_chars} chars):
---
{content}
---"""

EMAIL_PROMPT = """Summarize meeting content for an investor CRM. Contact: {name}.
Extract:
1. Investment status (e.g., 'Interested', 'Rejected').
2. Single most important next step.
3. Brief summary of key points (max {notes_chars} chars for notes).
Output JSON: {{"status": "...", "nextStep": "...", "notes": "..."}}.
Content (max {content_chars} chars):
---
{content}
---"""


def build_prompt(content: str, contact_name: str, source: Optional[NoteSource]) -> str:
    """Build the extraction prompt; transcript sources get the richer template."""
    template = TRANSCRIPT_PROMPT if source is not None and source.is_transcript else EMAIL_PROMPT
    return template.format(
        name=contact_name,
        notes_chars=PROMPT_NOTES_CHARS,
        content_chars=PROMPT_CONTENT_CHARS,
        content=content[:PROMPT_CONTENT_CHARS],
    )


def recover_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Return the first well-formed JSON object embedded in ``text``."""
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            value, _ = decoder.raw_decode(text, start)
        except ValueError:
            value = None
        if isinstance(value, dict):
            return value
        start = text.find("{", start + 1)
    return None


def parse_model_output(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Parse the model's answer into a dict.

    Tries strict JSON (after removing Markdown code fences) first, then
    falls back to the first embedded object.
    """
    if not raw or not raw.strip():
        return None

    stripped = CODE_FENCE_RE.sub("", raw.strip()).strip()
    try:
        value = json.loads(stripped)
        if isinstance(value, dict):
            return value
    except ValueError:
        logger.info("Strict JSON parse of AI response failed, trying recovery")

    return recover_json_object(raw)


def _field(data: Dict[str, Any], *names: str) -> str:
    for name in names:
        value = data.get(name)
        if value is None:
            continue
        text = value if isinstance(value, str) else json.dumps(value)
        if text.strip():
            return text.strip()
    return ""


def insufficient_content_insight(source: Optional[NoteSource]) -> Insight:
    label = source.value if source is not None else "notes"
    return Insight(
        status=STATUS_MANUAL_REVIEW,
        next_step=MANUAL_REVIEW_NEXT_STEP,
        notes=f"No meaningful content from {label}.",
        degraded=True,
        reason="insufficient_content",
    )


def failed_insight(reason: str) -> Insight:
    return Insight(
        status=STATUS_MANUAL_REVIEW,
        next_step=MANUAL_REVIEW_NEXT_STEP,
        notes=f"AI analysis failed: {reason}"[:NOTES_MAX_CHARS],
        degraded=True,
        reason="analysis_failed",
    )


def insight_from_fields(data: Dict[str, Any]) -> Insight:
    """Validate parsed fields, substituting a default for each missing one."""
    status = _field(data, "status")
    next_step = _field(data, "nextStep", "next_step")
    notes = _field(data, "notes")

    missing = [name for name, value in (("status", status), ("nextStep", next_step), ("notes", notes)) if not value]

    return Insight(
        status=status or STATUS_UNDER_REVIEW,
        next_step=next_step or MANUAL_REVIEW_NEXT_STEP,
        notes=(notes or MISSING_NOTES)[:NOTES_MAX_CHARS],
        degraded=bool(missing),
        reason=f"missing fields: {', '.join(missing)}" if missing else None,
    )


class InsightExtractor:
    """Extracts an Insight from meeting notes with a language model. Never raises."""

    def __init__(self, client: Optional[LLMClient]):
        self.client = client

    def extract(self, notes: Optional[str], contact_name: str, source: Optional[NoteSource] = None) -> Insight:
        label = source.value if source is not None else "unknown source"

        if not notes or len(notes.strip()) < MIN_CONTENT_CHARS:
            logger.info("Skipping AI for %s (source: %s): insufficient content.", contact_name, label)
            return insufficient_content_insight(source)

        if self.client is None:
            logger.warning("AI analysis skipped for %s: no AI client configured", contact_name)
            return failed_insight("No AI client configured")

        prompt = build_prompt(notes.strip(), contact_name, source)
        logger.debug("AI prompt for %s (source: %s): %s...", contact_name, label, prompt[:300])

        try:
            raw = self.client.complete(prompt)
        except Exception as exc:
            logger.warning("AI analysis failed for %s (source: %s): %s", contact_name, label, exc)
            return failed_insight(str(exc))

        logger.debug("Raw AI response for %s: %s", contact_name, raw or "empty")

        parsed = parse_model_output(raw)
        if parsed is None:
            logger.warning("AI response for %s was not valid JSON: %r", contact_name, (raw or "")[:300])
            return failed_insight("AI response not valid JSON")

        insight = insight_from_fields(parsed)
        if insight.degraded:
            logger.info("AI response for %s incomplete (%s)", contact_name, insight.reason)
        return insight
