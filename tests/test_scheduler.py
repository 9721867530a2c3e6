from datetime import datetime, timezone
from unittest.mock import patch

from investor_sync.core.errors import SyncAlreadyRunning
from investor_sync.core.models import SyncResult
from investor_sync.main import sync_job

NOW = datetime(2025, 9, 30, 12, 0, tzinfo=timezone.utc)


class TestSyncJob:
    """Test the scheduled sync job."""

    def setup_method(self):
        import investor_sync.routes.health
        investor_sync.routes.health._last_run = None

    def test_records_last_run(self):
        from investor_sync.routes.health import get_last_run

        result = SyncResult(success=True, run_id="run-9", contacts_processed=1, events_processed=1, timestamp=NOW)
        with patch('investor_sync.main.execute_sync', return_value=result):
            sync_job()

        assert get_last_run()["trigger"] == "scheduler"
        assert get_last_run()["run_id"] == "run-9"

    def test_busy_guard_is_skipped(self):
        from investor_sync.routes.health import get_last_run

        with patch('investor_sync.main.execute_sync', side_effect=SyncAlreadyRunning("busy")):
            sync_job()

        assert get_last_run() is None

    def test_unexpected_error_does_not_escape(self):
        with patch('investor_sync.main.execute_sync', side_effect=RuntimeError("boom")):
            sync_job()
