"""Tests for the run_job CLI wiring."""

import sys
from unittest.mock import patch

import pytest

from config import AppConfig
from db.database import DatabaseManager
from jobs.resolution_job import ResolutionJob
from jobs.sync_job import SyncJob
import run_job


@pytest.fixture
def config(tmp_path):
    return AppConfig(db_path=tmp_path / "test.db")


class TestWiring:
    def test_build_registry_order(self, config):
        registry = run_job.build_registry(config)
        assert registry.job_names == ["sync", "resolution"]
        assert isinstance(registry.get("sync"), SyncJob)
        assert isinstance(registry.get("resolution"), ResolutionJob)

    def test_build_registry_subset(self, config):
        assert run_job.build_registry(config, ["resolution"]).job_names == ["resolution"]

    def test_unknown_job(self, config):
        with pytest.raises(KeyError):
            run_job.build_job("whale", config)

    def test_build_context(self, config):
        context = run_job.build_context(config)
        assert isinstance(context["db"], DatabaseManager)
        assert context["queries"].db is context["db"]
        assert "polymarket_client" in context
        assert context["config"] is config


class TestMain:
    def test_unknown_job_exits(self, config):
        with patch.object(sys, "argv", ["run_job.py", "whale"]), \
                patch("run_job.load_config", return_value=config):
            with pytest.raises(SystemExit) as exc:
                run_job.main()
        assert exc.value.code == 1

    def test_runs_named_job(self, config):
        with patch.object(sys, "argv", ["run_job.py", "resolution"]), \
                patch("run_job.load_config", return_value=config):
            run_job.main()

        queries = run_job.build_context(config)["queries"]
        logs = queries.get_job_logs("resolution")
        assert len(logs) == 1
        assert logs[0]["status"] == "success"

    def test_all_runs_every_job(self, config):
        with patch.object(sys, "argv", ["run_job.py", "--all"]), \
                patch("run_job.load_config", return_value=config), \
                patch("clients.polymarket_client.PolymarketClient") as client_cls:
            client_cls.return_value.get_all_active_markets.return_value = []
            run_job.main()

        queries = run_job.build_context(config)["queries"]
        logs = queries.get_job_logs()
        assert sorted(log["job_name"] for log in logs) == ["resolution", "sync"]
        client_cls.return_value.get_all_active_markets.assert_called_once()
