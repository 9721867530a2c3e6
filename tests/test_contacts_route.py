import os
from datetime import datetime, timezone
from unittest.mock import patch

from fastapi.testclient import TestClient

from investor_sync.core.models import Contact
from investor_sync.main import app
from investor_sync.storage.json_store import JsonContactStore

T0 = datetime(2025, 9, 1, 15, 0, tzinfo=timezone.utc)


class TestContactsEndpoint:
    """Test GET /contacts."""

    def test_lists_contacts_from_json_store(self, tmp_path):
        path = tmp_path / "contacts.json"
        store = JsonContactStore(path)
        store.write_all([Contact(email="jane@acmeventures.com", name="Jane", status="Interested", last_meeting=T0)])
        store.record_completion(T0)
        client = TestClient(app)

        with patch.dict(os.environ, {"CONTACT_STORE": "json", "CONTACT_STORE_PATH": str(path)}):
            response = client.get("/contacts")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["lastSync"] == "2025-09-01T15:00:00Z"
        assert data["contacts"][0] == {
            "name": "Jane",
            "email": "jane@acmeventures.com",
            "status": "Interested",
            "nextStep": "Initial outreach",
            "notes": "",
            "lastMeeting": "2025-09-01T15:00:00Z",
            "createdAt": "",
        }

    def test_empty_store(self, tmp_path):
        client = TestClient(app)

        with patch.dict(os.environ, {"CONTACT_STORE": "json", "CONTACT_STORE_PATH": str(tmp_path / "none.json")}):
            response = client.get("/contacts")

        assert response.status_code == 200
        assert response.json() == {"contacts": [], "lastSync": None, "total": 0}

    def test_store_error_returns_500(self):
        client = TestClient(app)

        with patch.dict(os.environ, {"CONTACT_STORE": "sheets"}, clear=True):
            response = client.get("/contacts")

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to fetch contacts"
