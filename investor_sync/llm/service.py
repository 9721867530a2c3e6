import json
import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from investor_sync.core.config import AppConfig
from investor_sync.core.errors import LLMServiceError
from investor_sync.core.models import (
    STATUS_FOLLOW_UP,
    STATUS_INTERESTED,
    STATUS_MEETING_SCHEDULED,
    STATUS_REJECTED,
    STATUS_UNDER_REVIEW,
)

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_GEMINI_MODEL = "gemini-1.5-flash"


class LLMClient(ABC):
    """Abstract base class for LLM clients."""

    name = "llm"

    @abstractmethod
    def complete(self, prompt: str) -> str:
        """Return the model's raw text answer to ``prompt``."""
        pass


class StubLLMClient(LLMClient):
    """Deterministic stub LLM client for testing and when LLM is disabled."""

    name = "stub"

    def complete(self, prompt: str) -> str:
        """Classify by keyword so the same prompt always yields the same JSON."""
        content = prompt.split("---", 1)[-1].lower()

        if "not interested" in content or "pass on" in content or "passed" in content:
            status, next_step = STATUS_REJECTED, "Close out and ask for referrals"
        elif "term sheet" in content or "interested" in content or "excited" in content:
            status, next_step = STATUS_INTERESTED, "Send data room access"
        elif "follow up" in content or "follow-up" in content:
            status, next_step = STATUS_FOLLOW_UP, "Send follow-up email"
        elif "schedule" in content or "next meeting" in content:
            status, next_step = STATUS_MEETING_SCHEDULED, "Prepare for next meeting"
        else:
            status, next_step = STATUS_UNDER_REVIEW, "Check in next week"

        notes = " ".join(content.split())[:120]
        return json.dumps({"status": status, "nextStep": next_step, "notes": notes})


class OpenAIClient(LLMClient):
    """OpenAI chat completions client in JSON mode."""

    name = "openai"

    def __init__(self, api_key: str, model: str = DEFAULT_OPENAI_MODEL, timeout_ms: int = 30000):
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_ms / 1000.0
        self.base_url = "https://api.openai.com/v1"

    def complete(self, prompt: str) -> str:
        """Make API call to OpenAI with timeout and error handling."""
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

        data = {
            "model": self.model,
            "messages": [
                {"role": "user", "content": prompt}
            ],
            "response_format": {"type": "json_object"},
            "temperature": 0.3
        }

        try:
            with httpx.Client(timeout=self.timeout_seconds) as client:
                response = client.post(
                    f"{self.base_url}/chat/completions",
                    headers=headers,
                    json=data
                )
        except httpx.TimeoutException:
            raise LLMServiceError(f"OpenAI API timeout after {self.timeout_seconds}s")
        except httpx.HTTPError as e:
            raise LLMServiceError(f"OpenAI API error: {e}")

        if response.status_code != 200:
            raise LLMServiceError(
                f"OpenAI API error: {response.status_code} {response.text}",
                status_code=response.status_code,
            )

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise LLMServiceError(f"OpenAI API returned an unexpected payload: {e}")

        if not content:
            raise LLMServiceError("OpenAI API returned an empty response")
        return content.strip()


class GeminiClient(LLMClient):
    """Google Gemini ``generateContent`` client."""

    name = "gemini"

    def __init__(self, api_key: str, model: str = DEFAULT_GEMINI_MODEL, timeout_ms: int = 30000):
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_ms / 1000.0
        self.base_url = "https://generativelanguage.googleapis.com/v1beta"

    def complete(self, prompt: str) -> str:
        data = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": 0.3, "responseMimeType": "application/json"},
        }

        try:
            with httpx.Client(timeout=self.timeout_seconds) as client:
                response = client.post(
                    f"{self.base_url}/models/{self.model}:generateContent",
                    params={"key": self.api_key},
                    json=data,
                )
        except httpx.TimeoutException:
            raise LLMServiceError(f"Gemini API timeout after {self.timeout_seconds}s")
        except httpx.HTTPError as e:
            raise LLMServiceError(f"Gemini API error: {e}")

        if response.status_code != 200:
            raise LLMServiceError(
                f"Gemini API error: {response.status_code} {response.text}",
                status_code=response.status_code,
            )

        try:
            parts = response.json()["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise LLMServiceError(f"Gemini API returned an unexpected payload: {e}")

        text = "".join(part.get("text", "") for part in parts)
        if not text.strip():
            raise LLMServiceError("Gemini API returned an empty response")
        return text.strip()


def select_llm_client(config: AppConfig) -> Optional[LLMClient]:
    """
    Factory function to select LLM client based on configuration.

    OpenAI is preferred over Gemini when both keys are present, unless
    LLM_PROVIDER names one explicitly. Returns None when the LLM is enabled
    but no key is configured; the extractor then degrades every insight.
    """
    if not config.llm_enabled:
        return StubLLMClient()

    provider = (config.llm_provider or "").lower()
    if provider == "stub":
        return StubLLMClient()

    if config.openai_api_key and provider in ("", "openai"):
        return OpenAIClient(
            api_key=config.openai_api_key,
            model=config.llm_model or DEFAULT_OPENAI_MODEL,
            timeout_ms=config.llm_timeout_ms,
        )

    if config.gemini_api_key and provider in ("", "gemini"):
        return GeminiClient(
            api_key=config.gemini_api_key,
            model=config.llm_model or DEFAULT_GEMINI_MODEL,
            timeout_ms=config.llm_timeout_ms,
        )

    logger.warning("No AI API key configured for provider %r", provider or "auto")
    return None
