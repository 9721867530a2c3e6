import json
from unittest.mock import patch, MagicMock

import httpx
import pytest

from investor_sync.core.config import AppConfig
from investor_sync.core.errors import LLMServiceError
from investor_sync.llm.service import GeminiClient, OpenAIClient, StubLLMClient, select_llm_client


def _response(status_code=200, payload=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    response.text = text
    return response


class TestStubLLMClient:
    """Test the deterministic stub LLM client."""

    def test_interested(self):
        raw = StubLLMClient().complete("Prompt\n---\nThey are excited and want a term sheet.\n---")

        data = json.loads(raw)
        assert data["status"] == "Interested"
        assert data["nextStep"] == "Send data room access"

    def test_rejected_wins_over_interested(self):
        raw = StubLLMClient().complete("---\nNot interested at this stage.\n---")

        assert json.loads(raw)["status"] == "Rejected"

    @pytest.mark.parametrize("notes,expected", [
        ("Will follow up with the deck on Friday.", "Follow-up"),
        ("Let's schedule a partner meeting.", "Meeting Scheduled"),
        ("General catch-up about the market.", "Under Review"),
    ])
    def test_status_buckets(self, notes, expected):
        raw = StubLLMClient().complete(f"---\n{notes}\n---")

        assert json.loads(raw)["status"] == expected

    def test_deterministic(self):
        prompt = "---\nGeneral catch-up about the market.\n---"

        assert StubLLMClient().complete(prompt) == StubLLMClient().complete(prompt)


class TestOpenAIClient:
    """Test the OpenAI chat completions client."""

    def test_successful_completion(self):
        client = OpenAIClient(api_key="sk-test", model="gpt-test", timeout_ms=5000)
        payload = {"choices": [{"message": {"content": ' {"status": "Interested"} '}}]}

        with patch('httpx.Client') as mock_client:
            mock_post = mock_client.return_value.__enter__.return_value.post
            mock_post.return_value = _response(payload=payload)

            result = client.complete("prompt")

        assert result == '{"status": "Interested"}'
        mock_client.assert_called_once_with(timeout=5.0)
        body = mock_post.call_args.kwargs["json"]
        assert body["model"] == "gpt-test"
        assert body["response_format"] == {"type": "json_object"}
        assert body["temperature"] == 0.3

    def test_http_error_status(self):
        client = OpenAIClient(api_key="sk-test")

        with patch('httpx.Client') as mock_client:
            mock_client.return_value.__enter__.return_value.post.return_value = _response(status_code=429, text="rate limited")

            with pytest.raises(LLMServiceError) as exc_info:
                client.complete("prompt")

        assert exc_info.value.status_code == 429

    def test_timeout(self):
        client = OpenAIClient(api_key="sk-test")

        with patch('httpx.Client') as mock_client:
            mock_client.return_value.__enter__.return_value.post.side_effect = httpx.ReadTimeout("slow")

            with pytest.raises(LLMServiceError, match="timeout"):
                client.complete("prompt")

    def test_empty_content(self):
        client = OpenAIClient(api_key="sk-test")

        with patch('httpx.Client') as mock_client:
            mock_client.return_value.__enter__.return_value.post.return_value = _response(
                payload={"choices": [{"message": {"content": ""}}]}
            )

            with pytest.raises(LLMServiceError, match="empty"):
                client.complete("prompt")


class TestGeminiClient:
    def test_joins_parts(self):
        client = GeminiClient(api_key="g-key")
        payload = {"candidates": [{"content": {"parts": [{"text": '{"status":'}, {"text": ' "Follow-up"}'}]}}]}

        with patch('httpx.Client') as mock_client:
            mock_post = mock_client.return_value.__enter__.return_value.post
            mock_post.return_value = _response(payload=payload)

            result = client.complete("prompt")

        assert json.loads(result) == {"status": "Follow-up"}
        assert mock_post.call_args.kwargs["params"] == {"key": "g-key"}


class TestSelectLLMClient:
    """Test LLM client selection from configuration."""

    def test_disabled_uses_stub(self):
        assert isinstance(select_llm_client(AppConfig(llm_enabled=False, openai_api_key="sk")), StubLLMClient)

    def test_openai_preferred(self):
        client = select_llm_client(AppConfig(openai_api_key="sk", gemini_api_key="g"))

        assert isinstance(client, OpenAIClient)

    def test_explicit_gemini(self):
        client = select_llm_client(AppConfig(llm_provider="gemini", openai_api_key="sk", gemini_api_key="g"))

        assert isinstance(client, GeminiClient)

    def test_no_keys(self):
        assert select_llm_client(AppConfig()) is None
