"""Tests for the FastAPI cron trigger and read endpoints."""

from unittest.mock import MagicMock, patch

import pytest
import requests
from fastapi.testclient import TestClient

from api.server import create_app
from config import AppConfig, ResolutionConfig, ServerConfig
from db.database import DatabaseManager
from db.models import Agent, Market, Prediction
from db.queries import ArenaQueries

SECRET = "s3cret"
AUTH = {"Authorization": f"Bearer {SECRET}"}


@pytest.fixture
def db(tmp_path):
    return DatabaseManager(db_path=tmp_path / "test.db")


@pytest.fixture
def gamma():
    client = MagicMock()
    client.get_all_active_markets.return_value = []
    client.get_gamma_market.return_value = {
        "id": "pm-1", "closed": True, "outcomePrices": '["0.995", "0.005"]',
    }
    return client


@pytest.fixture
def seeded(db):
    queries = ArenaQueries(db)
    market_id = queries.upsert_market(Market(platform_id="pm-1", question="Q?",
                                             end_date="2024-05-01T00:00:00Z"))
    alpha = queries.insert_agent(Agent(name="alpha"))
    beta = queries.insert_agent(Agent(name="beta"))
    queries.insert_prediction(Prediction(agent_id=alpha, market_id=market_id,
                                         prediction="YES", confidence=0.9,
                                         price_at_prediction=0.5))
    queries.insert_prediction(Prediction(agent_id=beta, market_id=market_id,
                                         prediction="NO", confidence=0.7,
                                         price_at_prediction=0.5))
    return {"alpha": alpha, "beta": beta}


def _config(secret=SECRET):
    return AppConfig(
        server=ServerConfig(cron_secret=secret),
        resolution=ResolutionConfig(rate_limit_delay=0, max_fetch_attempts=1),
    )


def _app(db, gamma, secret=SECRET):
    def context_factory():
        return {"db": db, "queries": ArenaQueries(db), "polymarket_client": gamma}
    return TestClient(create_app(_config(secret), context_factory))


class TestCronAuth:
    def test_missing_header(self, db, gamma):
        resp = _app(db, gamma).get("/api/cron/check-resolutions")
        assert resp.status_code == 401
        assert resp.json() == {"error": "Unauthorized"}

    def test_wrong_secret(self, db, gamma):
        resp = _app(db, gamma).post("/api/cron/check-resolutions",
                                    headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    def test_no_secret_configured_refuses_everything(self, db, gamma):
        resp = _app(db, gamma, secret="").get("/api/cron/check-resolutions",
                                              headers={"Authorization": "Bearer "})
        assert resp.status_code == 401
        gamma.get_gamma_market.assert_not_called()


class TestCronRun:
    def test_get_runs_sync_then_resolution(self, db, gamma, seeded):
        resp = _app(db, gamma).get("/api/cron/check-resolutions", headers=AUTH)

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["resolved"] == 1
        assert body["settled"] == 2
        assert body["agents_updated"] == 2
        assert "errors" not in body
        assert body["timestamp"]
        gamma.get_all_active_markets.assert_called_once()

    def test_post_without_sync(self, db, gamma, seeded):
        resp = _app(db, gamma).post("/api/cron/check-resolutions?sync=false", headers=AUTH)

        assert resp.status_code == 200
        assert resp.json()["resolved"] == 1
        gamma.get_all_active_markets.assert_not_called()

    def test_repeat_call_settles_nothing(self, db, gamma, seeded):
        client = _app(db, gamma)
        client.post("/api/cron/check-resolutions", headers=AUTH)
        body = client.post("/api/cron/check-resolutions", headers=AUTH).json()
        assert body["resolved"] == 0
        assert body["settled"] == 0

    def test_item_errors_reported(self, db, gamma, seeded):
        gamma.get_gamma_market.side_effect = requests.HTTPError("503 Service Unavailable")
        resp = _app(db, gamma).get("/api/cron/check-resolutions", headers=AUTH)

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["errors"] == 1
        assert "503" in body["error_messages"][0]

    def test_sync_failure_does_not_block_resolution(self, db, gamma, seeded):
        gamma.get_all_active_markets.side_effect = requests.ConnectionError("gamma down")
        body = _app(db, gamma).get("/api/cron/check-resolutions", headers=AUTH).json()
        assert body["success"] is True
        assert "gamma down" in body["sync_error"]
        assert body["resolved"] == 1

    def test_fatal_error_returns_500(self, gamma):
        queries = MagicMock()
        queries.get_resolved_markets_with_unsettled_predictions.return_value = []
        queries.get_markets_due_for_resolution.side_effect = RuntimeError("connection refused")
        app = create_app(_config(), lambda: {"queries": queries, "polymarket_client": gamma})

        resp = TestClient(app).get("/api/cron/check-resolutions?sync=false", headers=AUTH)

        assert resp.status_code == 500
        body = resp.json()
        assert body["success"] is False
        assert "connection refused" in body["error"]


class TestReadEndpoints:
    @pytest.fixture
    def client(self, db, gamma, seeded):
        client = _app(db, gamma)
        client.post("/api/cron/check-resolutions?sync=false", headers=AUTH)
        return client

    def test_leaderboard(self, client, seeded):
        body = client.get("/api/leaderboards?metric=accuracy&limit=5").json()
        assert body["metric"] == "accuracy"
        board = body["leaderboard"]
        assert [e["name"] for e in board] == ["alpha", "beta"]
        assert board[0]["rank"] == 1
        assert board[0]["accuracy"] == 100.0

    def test_leaderboard_unknown_metric(self, client):
        resp = client.get("/api/leaderboards?metric=vibes")
        assert resp.status_code == 400

    def test_agent_stats(self, client, seeded):
        stats = client.get(f"/api/agents/{seeded['alpha']}/stats").json()["stats"]
        assert stats["accuracy"] == 100.0
        assert stats["total_profit_loss"] == pytest.approx(10.0)
        assert stats["resolved_predictions"] == 1
        assert stats["current_streak"] == 1

    def test_agent_stats_not_found(self, client):
        assert client.get("/api/agents/999/stats").status_code == 404

    def test_prediction_stats(self, client, seeded):
        stats = client.get("/api/predictions/stats").json()["stats"]
        assert stats["total"] == 2
        assert stats["resolved"] == 2
        assert stats["accuracy"] == 50.0

        stats = client.get(f"/api/predictions/stats?agentId={seeded['beta']}").json()["stats"]
        assert stats["total"] == 1
        assert stats["correct"] == 0

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"


class TestDefaultContext:
    def test_feed_client_built_once_and_closed(self, tmp_path):
        config = AppConfig(db_path=tmp_path / "app.db",
                           server=ServerConfig(cron_secret=SECRET))
        with patch("clients.polymarket_client.PolymarketClient") as client_cls:
            client_cls.return_value.get_all_active_markets.return_value = []
            app = create_app(config)
            with TestClient(app) as client:
                assert client.get("/health").json()["status"] == "healthy"
                for _ in range(2):
                    resp = client.get("/api/cron/check-resolutions", headers=AUTH)
                    assert resp.json()["success"] is True

        client_cls.assert_called_once()
        assert client_cls.return_value.get_all_active_markets.call_count == 2
        client_cls.return_value.close.assert_called_once()
