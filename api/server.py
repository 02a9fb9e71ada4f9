"""FastAPI server: cron trigger for resolution cycles plus read-only stats.

Endpoints:
- GET/POST /api/cron/check-resolutions: run sync, then resolution.
  Requires ``Authorization: Bearer <CRON_SECRET>``.
- GET /api/leaderboards?metric=accuracy|roi|profit|streak|predictions&limit=N
- GET /api/agents/{agent_id}/stats
- GET /api/predictions/stats?agentId=N
- GET /health
"""

from __future__ import annotations

import hmac
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, Header, HTTPException, Query
from fastapi.responses import JSONResponse

from config import AppConfig, load_config
from jobs.resolution_job import ResolutionJob
from jobs.sync_job import SyncJob
from resolution.stats import compute_agent_stats, summarize_predictions

logger = logging.getLogger(__name__)


def _authorized(authorization: Optional[str], secret: str) -> bool:
    """Constant-time bearer check. With no secret configured, nothing passes."""
    if not secret or not authorization:
        return False
    return hmac.compare_digest(authorization.encode(), f"Bearer {secret}".encode())


def create_app(config: Optional[AppConfig] = None,
               context_factory: Optional[Callable[[], Dict[str, Any]]] = None) -> FastAPI:
    """Build the app. ``context_factory`` supplies the job context per request."""
    config = config or load_config()

    owned: Dict[str, Any] = {}
    if context_factory is None:
        from db.database import DatabaseManager
        from run_job import build_context

        db = DatabaseManager(db_path=config.db_path, database_url=config.database_url)
        # Store and feed client live as long as the app; jobs write their
        # results into the dict, so each request gets its own copy.
        shared = build_context(config, db)
        owned = shared

        def context_factory() -> Dict[str, Any]:
            return dict(shared)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        client = owned.get("polymarket_client")
        if client is not None:
            logger.info("Closing Polymarket client")
            client.close()

    app = FastAPI(
        title="Forecast Arena API",
        description="Market resolution, settlement and agent leaderboards",
        version="0.1.0",
        lifespan=lifespan,
    )

    def check_resolutions(authorization: Optional[str], sync: bool):
        if not _authorized(authorization, config.server.cron_secret):
            return JSONResponse({"error": "Unauthorized"}, status_code=401)

        logger.info("Starting resolution check")
        context = context_factory()
        body: Dict[str, Any] = {}

        if sync:
            sync_result = SyncJob(config.sync).run(context)
            body["synced"] = sync_result.items_processed
            if sync_result.error:
                # Resolution works from what is already stored.
                logger.warning("Market sync failed: %s", sync_result.error)
                body["sync_error"] = sync_result.error

        result = ResolutionJob(config.resolution, config.settlement).run(context)
        body["timestamp"] = datetime.now(timezone.utc).isoformat()

        if not result.ok:
            body.update({"success": False, "error": result.error})
            return JSONResponse(body, status_code=500)

        body.update({
            "success": True,
            "resolved": result.data.get("markets_resolved", 0),
            "settled": result.data.get("predictions_settled", 0),
            "agents_updated": result.data.get("agents_updated", 0),
            "summary": result.summary,
        })
        if result.data.get("errors"):
            body["errors"] = result.data["errors"]
            body["error_messages"] = result.data.get("error_messages", [])
        return body

    @app.get("/api/cron/check-resolutions", tags=["Cron"])
    def check_resolutions_get(authorization: Optional[str] = Header(default=None),
                              sync: bool = Query(True)):
        """Scheduled trigger."""
        return check_resolutions(authorization, sync)

    @app.post("/api/cron/check-resolutions", tags=["Cron"])
    def check_resolutions_post(authorization: Optional[str] = Header(default=None),
                               sync: bool = Query(True)):
        """Manual trigger."""
        logger.info("Manual resolution check triggered")
        return check_resolutions(authorization, sync)

    @app.get("/api/leaderboards", tags=["Stats"])
    def leaderboards(metric: str = Query("accuracy"),
                     limit: int = Query(20, ge=1, le=100)):
        queries = context_factory()["queries"]
        try:
            board = queries.get_leaderboard(metric=metric, limit=limit)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"success": True, "metric": metric, "leaderboard": board}

    @app.get("/api/agents/{agent_id}/stats", tags=["Stats"])
    def agent_stats(agent_id: int):
        queries = context_factory()["queries"]
        if not queries.get_agent(agent_id):
            raise HTTPException(status_code=404, detail=f"Agent {agent_id} not found")
        stats = compute_agent_stats(
            queries.get_resolved_predictions(agent_id),
            stake=config.settlement.stake,
        )
        return {
            "success": True,
            "stats": {
                "accuracy": stats.accuracy,
                "roi": stats.roi,
                "total_profit_loss": stats.total_profit_loss,
                "resolved_predictions": stats.resolved_count,
                "correct_predictions": stats.correct_count,
                "current_streak": stats.current_streak,
                "longest_streak": stats.longest_streak,
            },
        }

    @app.get("/api/predictions/stats", tags=["Stats"])
    def prediction_stats(agent_id: Optional[int] = Query(None, alias="agentId")):
        queries = context_factory()["queries"]
        return {
            "success": True,
            "stats": summarize_predictions(queries.get_predictions(agent_id=agent_id)),
        }

    @app.get("/health", tags=["Health"])
    def health():
        context = context_factory()
        db_ok = context["db"].ping() if context.get("db") else False
        return {
            "status": "healthy" if db_ok else "degraded",
            "service": "forecast-arena",
            "database": "connected" if db_ok else "disconnected",
        }

    return app


def main():
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    config = load_config()
    uvicorn.run(create_app(config), host=config.server.host, port=config.server.port)


if __name__ == "__main__":
    main()
