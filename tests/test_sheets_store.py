from datetime import datetime, timezone
from unittest.mock import patch, MagicMock

import pytest

from investor_sync.core.config import AppConfig
from investor_sync.core.errors import AuthError, StoreError
from investor_sync.core.models import Contact
from investor_sync.storage.sheets_store import (
    CONTACTS_RANGE,
    HEADER,
    GoogleSheetsContactStore,
    create_sheets_contact_store,
    row_to_contact,
)

T0 = datetime(2025, 9, 1, 15, 0, tzinfo=timezone.utc)


def _response(status_code=200, payload=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    response.text = text
    return response


def _store():
    token_provider = MagicMock()
    token_provider.token.return_value = "fake_token"
    return GoogleSheetsContactStore(token_provider, sheet_id="sheet-123", timeout=5.0)


class TestGoogleSheetsContactStore:
    """Test the Google Sheets contact store."""

    def test_read_all_skips_header_and_blank_rows(self):
        store = _store()
        values = [
            HEADER,
            ["Jane Park", "Jane@AcmeVentures.com", "Interested", "Send deck", "Keen", "2025-09-01T15:00:00.000Z", "2025-08-01"],
            ["", "", "", "", "", "", ""],
            ["Sam", "sam@gridflowcap.com"],
        ]

        with patch('httpx.Client') as mock_client:
            mock_request = mock_client.return_value.__enter__.return_value.request
            mock_request.return_value = _response(payload={"values": values})

            contacts = store.read_all()

        assert [c.email for c in contacts] == ["jane@acmeventures.com", "sam@gridflowcap.com"]
        assert contacts[0].last_meeting == T0
        assert contacts[0].created_at == datetime(2025, 8, 1, tzinfo=timezone.utc)
        assert contacts[1].status == ""
        method, url = mock_request.call_args.args
        assert method == "GET"
        assert url.endswith("/sheet-123/values/Contacts!A:G")

    def test_write_all_single_call_with_padding(self):
        """A shorter list overwrites the old tail with blank rows in the same call."""
        store = _store()
        values = [HEADER] + [["n", f"c{i}@x.com", "", "", "", "", ""] for i in range(3)]

        with patch('httpx.Client') as mock_client:
            mock_request = mock_client.return_value.__enter__.return_value.request
            mock_request.return_value = _response(payload={"values": values})
            store.read_all()

            mock_request.reset_mock()
            mock_request.return_value = _response(payload={})
            store.write_all([Contact(email="c0@x.com", name="n", last_meeting=T0)])

        assert mock_request.call_count == 1
        method, url = mock_request.call_args.args
        kwargs = mock_request.call_args.kwargs
        assert method == "PUT"
        assert url.endswith("/values/" + CONTACTS_RANGE)
        assert kwargs["params"] == {"valueInputOption": "RAW"}
        written = kwargs["json"]["values"]
        assert written[0] == HEADER
        assert written[1] == ["n", "c0@x.com", "New Contact", "Initial outreach", "", "2025-09-01T15:00:00Z", ""]
        assert written[2:] == [[""] * 7, [""] * 7]

    def test_record_completion(self):
        store = _store()

        with patch('httpx.Client') as mock_client:
            mock_request = mock_client.return_value.__enter__.return_value.request
            mock_request.return_value = _response(payload={})

            store.record_completion(T0)

        assert mock_request.call_args.args[1].endswith("/values/Contacts!H1")
        assert mock_request.call_args.kwargs["json"]["values"] == [["2025-09-01T15:00:00Z"]]

    def test_last_sync(self):
        store = _store()

        with patch('httpx.Client') as mock_client:
            mock_client.return_value.__enter__.return_value.request.return_value = _response(
                payload={"values": [["2025-09-01T15:00:00Z"]]}
            )

            assert store.last_sync() == T0

    def test_last_sync_empty(self):
        store = _store()

        with patch('httpx.Client') as mock_client:
            mock_client.return_value.__enter__.return_value.request.return_value = _response(payload={"range": "Contacts!H1"})

            assert store.last_sync() is None

    def test_single_tab_sheet(self):
        """A full run touches only the Contacts tab; the marker sits beside the contact columns."""
        store = _store()

        with patch('httpx.Client') as mock_client:
            mock_request = mock_client.return_value.__enter__.return_value.request
            mock_request.side_effect = [
                _response(payload={"values": [HEADER, ["Jane", "jane@acmeventures.com"]]}),
                _response(payload={}),
                _response(payload={}),
                _response(payload={"values": [["2025-09-01T15:00:00Z"]]}),
            ]

            contacts = store.read_all()
            store.write_all(contacts)
            store.record_completion(T0)
            assert store.last_sync() == T0

        ranges = [c.args[1].rsplit("/values/", 1)[1] for c in mock_request.call_args_list]
        assert ranges == ["Contacts!A:G", "Contacts!A:G", "Contacts!H1", "Contacts!H1"]

    def test_last_sync_unreadable_range_raises_store_error(self):
        store = _store()

        with patch('httpx.Client') as mock_client:
            mock_client.return_value.__enter__.return_value.request.return_value = _response(
                status_code=400, text="Unable to parse range"
            )

            with pytest.raises(StoreError):
                store.last_sync()

    def test_forbidden_raises_auth_error(self):
        store = _store()

        with patch('httpx.Client') as mock_client:
            mock_client.return_value.__enter__.return_value.request.return_value = _response(status_code=403)

            with pytest.raises(AuthError):
                store.read_all()

    def test_server_error_raises_store_error(self):
        store = _store()

        with patch('httpx.Client') as mock_client:
            mock_client.return_value.__enter__.return_value.request.return_value = _response(status_code=500, text="oops")

            with pytest.raises(StoreError):
                store.write_all([])


class TestSheetsFactory:
    def test_missing_sheet_id(self):
        with pytest.raises(StoreError):
            create_sheets_contact_store(AppConfig(google_service_email="a@b.com", google_private_key="k"))

    def test_missing_service_account(self):
        with pytest.raises(AuthError):
            create_sheets_contact_store(AppConfig(google_sheet_id="sheet-123"))


class TestRowToContact:
    def test_short_row_padded(self):
        contact = row_to_contact(["Jane", "jane@acmeventures.com"])

        assert contact.email == "jane@acmeventures.com"
        assert contact.last_meeting is None

    def test_missing_email(self):
        assert row_to_contact(["Jane"]) is None
