"""Tests for CLI commands"""

import json
from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest
from sqlalchemy import create_engine, inspect
from typer.testing import CliRunner

from cli.client.base import APIClient, JobQueueError
from cli.main import app
from cli.utils.config_manager import config as config_manager
from jobqueue.config.settings import Settings


@pytest.fixture
def runner():
    """CLI test runner"""
    return CliRunner()


@pytest.fixture
def mock_client():
    """Mock API client"""
    client = Mock()
    client.__enter__ = Mock(return_value=client)
    client.__exit__ = Mock(return_value=None)
    return client


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep CLI configuration out of the real home directory"""
    monkeypatch.setattr(config_manager, "config_dir", tmp_path / ".jobqueue")
    monkeypatch.setattr(
        config_manager, "config_file", tmp_path / ".jobqueue" / "config.yaml"
    )
    return config_manager


class TestMainCommands:
    """Test main CLI commands"""

    def test_version(self, runner):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "Job Queue CLI" in result.output

    def test_version_flag(self, runner):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "Job Queue CLI v1.0.0" in result.output

    @patch("cli.main.JobQueueClient")
    def test_status_success(self, mock_client_class, runner, mock_client):
        mock_client.health_check.return_value = {
            "version": "1.0.0",
            "environment": "development",
            "queue": {"queue_depth": 4, "overdue_jobs": 0},
        }
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "Connected Successfully" in result.output

    @patch("cli.main.JobQueueClient")
    def test_status_failure(self, mock_client_class, runner, mock_client):
        mock_client.health_check.side_effect = JobQueueError("Connection failed")
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["status"])
        assert result.exit_code == 1
        assert "Connection Failed" in result.output


class TestJobsCommands:
    """Test jobs commands"""

    @patch("cli.commands.jobs.JobQueueClient")
    def test_stats(self, mock_client_class, runner, mock_client):
        mock_client.stats.return_value = {
            "pending": 3,
            "running": 1,
            "completed": 10,
            "failed": 2,
            "queue_depth": 4,
            "by_type": {"webhook": 16},
        }
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "stats"])
        assert result.exit_code == 0
        assert "Queue Statistics" in result.output
        assert "webhook" in result.output

    @patch("cli.commands.jobs.JobQueueClient")
    def test_list(self, mock_client_class, runner, mock_client):
        mock_client.list_jobs.return_value = {
            "jobs": [
                {
                    "id": 7,
                    "job_type": "webhook",
                    "status": "failed",
                    "attempts": 5,
                    "max_attempts": 5,
                    "scheduled_at": "2026-01-05T12:00:00Z",
                    "last_error": "Server error '500 Internal Server Error'",
                }
            ],
            "total": 1,
        }
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "list", "--status", "failed"])
        assert result.exit_code == 0
        assert "webhook" in result.output
        mock_client.list_jobs.assert_called_once_with(
            status="failed", type=None, limit=20, offset=0
        )

    @patch("cli.commands.jobs.JobQueueClient")
    def test_list_empty(self, mock_client_class, runner, mock_client):
        mock_client.list_jobs.return_value = {"jobs": [], "total": 0}
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "list"])
        assert result.exit_code == 0
        assert "No jobs found" in result.output

    @patch("cli.commands.jobs.JobQueueClient")
    def test_show(self, mock_client_class, runner, mock_client):
        mock_client.get_job.return_value = {
            "id": 3,
            "job_type": "log_message",
            "status": "completed",
            "attempts": 1,
            "max_attempts": 1,
            "payload": {"message": "hi"},
        }
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "show", "3"])
        assert result.exit_code == 0
        assert "Job 3" in result.output
        mock_client.get_job.assert_called_once_with(3)

    @patch("cli.commands.jobs.JobQueueClient")
    def test_show_missing(self, mock_client_class, runner, mock_client):
        mock_client.get_job.side_effect = JobQueueError("API Error 404: Job not found")
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "show", "99"])
        assert result.exit_code == 1

    @patch("cli.commands.jobs.JobQueueClient")
    def test_enqueue(self, mock_client_class, runner, mock_client):
        mock_client.enqueue.return_value = {"job_id": 12, "job_type": "log_message"}
        mock_client_class.return_value = mock_client

        result = runner.invoke(
            app,
            [
                "jobs",
                "enqueue",
                "log_message",
                "--payload",
                json.dumps({"message": "hi"}),
                "--delay",
                "30",
            ],
        )
        assert result.exit_code == 0
        assert "Enqueued log_message job 12" in result.output
        mock_client.enqueue.assert_called_once_with(
            "log_message", {"message": "hi"}, delay_seconds=30
        )

    def test_enqueue_invalid_json(self, runner):
        result = runner.invoke(app, ["jobs", "enqueue", "x", "--payload", "{nope"])
        assert result.exit_code == 1
        assert "not valid JSON" in result.output

    def test_enqueue_payload_must_be_object(self, runner):
        result = runner.invoke(app, ["jobs", "enqueue", "x", "--payload", "[1, 2]"])
        assert result.exit_code == 1

    @patch("cli.commands.jobs.JobQueueClient")
    def test_process(self, mock_client_class, runner, mock_client):
        mock_client.process.return_value = {"processed": 4}
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "process", "--limit", "5"])
        assert result.exit_code == 0
        assert "Processed 4 job(s)" in result.output
        mock_client.process.assert_called_once_with(5)

    @patch("cli.commands.jobs.JobQueueClient")
    def test_reset_stuck(self, mock_client_class, runner, mock_client):
        mock_client.reset_stuck.return_value = {"recovered": 2}
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "reset-stuck"])
        assert result.exit_code == 0
        assert "Recovered 2 stuck job(s)" in result.output

    @patch("cli.commands.jobs.JobQueueClient")
    def test_cleanup(self, mock_client_class, runner, mock_client):
        mock_client.cleanup.return_value = {"removed": 9, "days_to_keep": 30}
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "cleanup", "--days", "30"])
        assert result.exit_code == 0
        assert "Removed 9 job(s)" in result.output
        mock_client.cleanup.assert_called_once_with(30)


class TestConfigCommands:
    """Test config commands"""

    def test_set_and_get(self, runner, isolated_config):
        result = runner.invoke(app, ["config", "set", "api.base_url", "http://queue:9000"])
        assert result.exit_code == 0
        assert isolated_config.get("api.base_url") == "http://queue:9000"

        result = runner.invoke(app, ["config", "get", "api.base_url"])
        assert result.exit_code == 0
        assert "http://queue:9000" in result.output

    def test_set_numeric_value(self, runner, isolated_config):
        result = runner.invoke(app, ["config", "set", "display.page_size", "50"])
        assert result.exit_code == 0
        assert isolated_config.get("display.page_size") == 50

    def test_set_rejects_bad_url(self, runner):
        result = runner.invoke(app, ["config", "set", "api.base_url", "queue:9000"])
        assert result.exit_code == 1

    def test_set_rejects_bad_timeout(self, runner):
        result = runner.invoke(app, ["config", "set", "api.timeout", "soon"])
        assert result.exit_code == 1

    def test_get_missing_key(self, runner):
        result = runner.invoke(app, ["config", "get", "api.nothing"])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_show(self, runner):
        result = runner.invoke(app, ["config", "show"])
        assert result.exit_code == 0
        assert "base_url" in result.output

    def test_reset(self, runner, isolated_config):
        isolated_config.set("api.timeout", 99)

        result = runner.invoke(app, ["config", "reset", "--yes"])
        assert result.exit_code == 0
        assert isolated_config.get("api.timeout") == 30


class TestWorkerCommands:
    """Test in-process worker commands"""

    @patch("cli.commands.worker.setup_logging")
    @patch("cli.commands.worker._run_tick", new_callable=AsyncMock)
    def test_tick(self, mock_tick, mock_setup_logging, runner):
        mock_tick.return_value = {"recovered": 1, "processed": 3}

        result = runner.invoke(app, ["worker", "tick"])
        assert result.exit_code == 0
        assert "processed 3 job(s)" in result.output
        mock_tick.assert_awaited_once()

    @patch("cli.commands.worker.setup_logging")
    def test_init_db_creates_jobs_table(self, mock_setup_logging, runner, tmp_path):
        db_path = tmp_path / "cli.db"
        settings = Settings(database_url=f"sqlite+aiosqlite:///{db_path}")

        with patch("cli.commands.worker.get_settings", return_value=settings):
            result = runner.invoke(app, ["worker", "init-db"])

        assert result.exit_code == 0
        assert "Jobs table ready" in result.output

        engine = create_engine(f"sqlite:///{db_path}")
        try:
            inspector = inspect(engine)
            assert inspector.has_table("jobs")
            index_names = {index["name"] for index in inspector.get_indexes("jobs")}
            assert {"ix_jobs_status_scheduled_at", "ix_jobs_job_type"} <= index_names
        finally:
            engine.dispose()

    @patch("cli.commands.worker._init_schema", new_callable=AsyncMock)
    def test_init_db_drop_requires_confirmation(self, mock_init, runner):
        result = runner.invoke(app, ["worker", "init-db", "--drop"], input="n\n")

        assert result.exit_code != 0
        mock_init.assert_not_awaited()

    @patch("cli.commands.worker.setup_logging")
    @patch("cli.commands.worker._init_schema", new_callable=AsyncMock)
    def test_init_db_drop_confirmed(self, mock_init, mock_setup_logging, runner):
        result = runner.invoke(app, ["worker", "init-db", "--drop", "--yes"])

        assert result.exit_code == 0
        assert "Jobs table recreated" in result.output
        mock_init.assert_awaited_once_with(True)


class TestAPIClient:
    """Test envelope handling in the HTTP client"""

    def _client(self, handler) -> APIClient:
        return APIClient("http://test", transport=httpx.MockTransport(handler))

    def test_unwraps_success_envelope(self):
        def handler(request):
            assert request.url.path == "/v1/jobs/stats/overview"
            return httpx.Response(200, json={"ok": True, "data": {"pending": 1}})

        with self._client(handler) as client:
            assert client.get("/jobs/stats/overview") == {"pending": 1}

    def test_raises_on_error_status(self):
        def handler(request):
            return httpx.Response(
                422, json={"ok": False, "error": {"message": "Unknown job type: x"}}
            )

        with self._client(handler) as client:
            with pytest.raises(JobQueueError, match="Unknown job type: x"):
                client.post("/jobs", json={"type": "x"})

    def test_raises_on_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with self._client(handler) as client:
            with pytest.raises(JobQueueError, match="Connection failed"):
                client.get("/healthz")

    def test_passes_query_params(self):
        def handler(request):
            assert request.url.params["limit"] == "5"
            return httpx.Response(200, json={"ok": True, "data": {"processed": 0}})

        with self._client(handler) as client:
            assert client.post("/jobs/process", params={"limit": 5}) == {
                "processed": 0
            }
