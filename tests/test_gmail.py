import base64
from unittest.mock import patch, MagicMock

import httpx
import pytest

from investor_sync.core.config import AppConfig
from investor_sync.core.errors import AuthError, NotesSourceError
from investor_sync.mail.gmail import GmailClient, create_gmail_client


def _response(status_code=200, payload=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    response.text = text
    return response


def _client():
    token_provider = MagicMock()
    token_provider.token.return_value = "fake_token"
    return GmailClient(token_provider, timeout=5.0)


class TestGmailClient:
    """Test the Gmail REST client."""

    def test_search_returns_ids(self):
        """Search passes the query and returns message ids."""
        client = _client()

        with patch('httpx.Client') as mock_client:
            mock_get = mock_client.return_value.__enter__.return_value.get
            mock_get.return_value = _response(payload={"messages": [{"id": "m1"}, {"id": "m2"}]})

            ids = client.search("from:x@y.com", max_results=5)

        assert ids == ["m1", "m2"]
        _, kwargs = mock_get.call_args
        assert kwargs["params"] == {"q": "from:x@y.com", "maxResults": 5}
        assert kwargs["headers"]["Authorization"] == "Bearer fake_token"

    def test_search_no_results(self):
        client = _client()

        with patch('httpx.Client') as mock_client:
            mock_client.return_value.__enter__.return_value.get.return_value = _response(payload={"resultSizeEstimate": 0})

            assert client.search("anything") == []

    def test_get_message_parses_headers_and_body(self):
        """Subject/From headers and the plain body end up on the message."""
        client = _client()
        body = base64.urlsafe_b64encode(b"Thanks for the call today.").decode("ascii")
        payload = {
            "payload": {
                "mimeType": "text/plain",
                "headers": [
                    {"name": "Subject", "value": "Meeting recap"},
                    {"name": "From", "value": "Jane <jane@acmeventures.com>"},
                ],
                "body": {"data": body},
            }
        }

        with patch('httpx.Client') as mock_client:
            mock_client.return_value.__enter__.return_value.get.return_value = _response(payload=payload)

            message = client.get_message("m1")

        assert message.subject == "Meeting recap"
        assert message.sender == "Jane <jane@acmeventures.com>"
        assert message.body == "Thanks for the call today."
        assert message.as_notes().startswith("Subject: Meeting recap\nFrom: Jane")

    def test_forbidden_raises_auth_error(self):
        client = _client()

        with patch('httpx.Client') as mock_client:
            mock_client.return_value.__enter__.return_value.get.return_value = _response(status_code=403)

            with pytest.raises(AuthError):
                client.search("q")

    def test_server_error_raises_notes_source_error(self):
        client = _client()

        with patch('httpx.Client') as mock_client:
            mock_client.return_value.__enter__.return_value.get.return_value = _response(status_code=500, text="boom")

            with pytest.raises(NotesSourceError) as exc_info:
                client.search("q")

        assert exc_info.value.status_code == 500

    def test_timeout_raises_notes_source_error(self):
        client = _client()

        with patch('httpx.Client') as mock_client:
            mock_client.return_value.__enter__.return_value.get.side_effect = httpx.ReadTimeout("slow")

            with pytest.raises(NotesSourceError, match="timeout"):
                client.search("q")


class TestCreateGmailClient:
    """Test Gmail credential selection."""

    def test_no_credentials_returns_none(self, tmp_path):
        config = AppConfig(gmail_token_path=str(tmp_path / "missing.json"))

        assert create_gmail_client(config) is None

    def test_token_file_preferred(self, tmp_path):
        token_file = tmp_path / "gmail-tokens.json"
        token_file.write_text('{"access_token": "a", "refresh_token": "r"}', encoding="utf-8")
        config = AppConfig(gmail_token_path=str(token_file), google_client_id="cid", google_client_secret="cs")

        with patch('investor_sync.mail.gmail.service_account_provider') as mock_sa:
            client = create_gmail_client(config)

        assert client is not None
        assert client.token_provider.label == "gmail"
        mock_sa.assert_not_called()
