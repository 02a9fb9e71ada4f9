"""Named query functions for all database operations.

Resolution writes are conditional updates: a market is only marked resolved
if it is still unresolved, and a prediction is only settled if its outcome
is still unset. The boolean return values tell the caller whether it won
the race, so overlapping resolution cycles can never double-settle.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .database import DatabaseManager
from .models import Agent, JobLog, Market, Prediction


def _now() -> str:
    return to_utc_iso(datetime.now(timezone.utc))


def to_utc_iso(value: Any, precise: bool = False) -> Optional[str]:
    """Normalize a datetime or ISO string to ``YYYY-MM-DDTHH:MM:SS+00:00``.

    Stored timestamps share one format so they compare correctly as text.
    With ``precise`` the seconds carry a fixed six-digit fraction, which
    still sorts as text. Returns None for empty or unparseable input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    if precise:
        return dt.isoformat(timespec="microseconds")
    return dt.replace(microsecond=0).isoformat()


def _row(row) -> Dict[str, Any]:
    data = dict(row)
    if "resolved" in data and data["resolved"] is not None:
        data["resolved"] = bool(data["resolved"])
    if "correct" in data and data["correct"] is not None:
        data["correct"] = bool(data["correct"])
    return data


_LEADERBOARD_METRICS = {
    "accuracy": "accuracy",
    "roi": "roi",
    "profit": "total_profit_loss",
    "streak": "longest_streak",
    "predictions": "total_predictions",
}


class ArenaQueries:
    def __init__(self, db: DatabaseManager) -> None:
        self.db = db

    # ── Markets ──────────────────────────────────────────────

    def upsert_market(self, market: Market) -> int:
        """Insert or refresh a market by platform id, returning its ID.

        Resolution fields are never overwritten here; they belong to the
        resolution job.
        """
        with self.db._connect() as conn:
            conn.execute("""
                INSERT INTO markets (platform_id, slug, question, description,
                    end_date, yes_price, no_price, volume, liquidity, last_updated)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(platform_id) DO UPDATE SET
                    slug=excluded.slug,
                    question=excluded.question,
                    description=excluded.description,
                    end_date=excluded.end_date,
                    yes_price=excluded.yes_price,
                    no_price=excluded.no_price,
                    volume=excluded.volume,
                    liquidity=excluded.liquidity,
                    last_updated=excluded.last_updated
            """, (
                market.platform_id, market.slug, market.question,
                market.description, to_utc_iso(market.end_date),
                market.yes_price, market.no_price, market.volume,
                market.liquidity, _now(),
            ))
            row = conn.execute(
                "SELECT id FROM markets WHERE platform_id=?",
                (market.platform_id,),
            ).fetchone()
            return row["id"]

    def get_market_by_id(self, market_id: int) -> Optional[Dict[str, Any]]:
        with self.db._connect() as conn:
            row = conn.execute("SELECT * FROM markets WHERE id=?", (market_id,)).fetchone()
            return _row(row) if row else None

    def get_market_by_platform_id(self, platform_id: str) -> Optional[Dict[str, Any]]:
        with self.db._connect() as conn:
            row = conn.execute(
                "SELECT * FROM markets WHERE platform_id=?", (platform_id,),
            ).fetchone()
            return _row(row) if row else None

    def get_markets_due_for_resolution(self, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Unresolved markets whose end date has passed."""
        cutoff = to_utc_iso(now or datetime.now(timezone.utc))
        with self.db._connect() as conn:
            rows = conn.execute("""
                SELECT * FROM markets
                WHERE resolved = 0 AND end_date IS NOT NULL AND end_date <= ?
                ORDER BY end_date, id
            """, (cutoff,)).fetchall()
            return [_row(r) for r in rows]

    def get_resolved_markets_with_unsettled_predictions(self) -> List[Dict[str, Any]]:
        """Resolved markets that still have predictions waiting on settlement."""
        with self.db._connect() as conn:
            rows = conn.execute("""
                SELECT * FROM markets m
                WHERE m.resolved = 1 AND EXISTS (
                    SELECT 1 FROM predictions p
                    WHERE p.market_id = m.id AND p.outcome IS NULL
                )
                ORDER BY m.id
            """).fetchall()
            return [_row(r) for r in rows]

    def resolve_market(self, market_id: int, outcome: str,
                       resolved_at: Optional[str] = None) -> bool:
        """Mark a market resolved. Returns False if it was already resolved."""
        stamp = resolved_at or _now()
        with self.db._connect() as conn:
            cursor = conn.execute("""
                UPDATE markets SET resolved=1, outcome=?, resolved_at=?, last_updated=?
                WHERE id=? AND resolved=0
            """, (outcome, stamp, stamp, market_id))
            return cursor.rowcount == 1

    # ── Agents ───────────────────────────────────────────────

    def insert_agent(self, agent: Agent) -> int:
        with self.db._connect() as conn:
            cursor = conn.execute(self.db._returning_id("""
                INSERT INTO agents (name, strategy, created_at)
                VALUES (?, ?, ?)
            """), (agent.name, agent.strategy, agent.created_at or _now()))
            return self.db._last_id(cursor)

    def get_agent(self, agent_id: int) -> Optional[Dict[str, Any]]:
        with self.db._connect() as conn:
            row = conn.execute("SELECT * FROM agents WHERE id=?", (agent_id,)).fetchone()
            return dict(row) if row else None

    def update_agent_stats(self, agent_id: int, stats) -> bool:
        """Overwrite an agent's derived stats with a fresh recomputation."""
        with self.db._connect() as conn:
            cursor = conn.execute("""
                UPDATE agents SET
                    accuracy=?, roi=?, total_profit_loss=?,
                    resolved_predictions=?, correct_predictions=?,
                    current_streak=?, longest_streak=?,
                    total_predictions=(SELECT COUNT(*) FROM predictions WHERE agent_id=?),
                    stats_updated_at=?
                WHERE id=?
            """, (
                stats.accuracy, stats.roi, stats.total_profit_loss,
                stats.resolved_count, stats.correct_count,
                stats.current_streak, stats.longest_streak,
                agent_id, _now(), agent_id,
            ))
            return cursor.rowcount == 1

    def get_leaderboard(self, metric: str = "accuracy", limit: int = 20,
                        min_resolved: int = 0) -> List[Dict[str, Any]]:
        """Agents ranked by a stats column (accuracy, roi, profit, streak, predictions)."""
        column = _LEADERBOARD_METRICS.get(metric)
        if column is None:
            raise ValueError(
                f"Unknown leaderboard metric {metric!r}; "
                f"expected one of {', '.join(_LEADERBOARD_METRICS)}"
            )
        with self.db._connect() as conn:
            rows = conn.execute(f"""
                SELECT * FROM agents
                WHERE resolved_predictions >= ?
                ORDER BY {column} DESC, id ASC
                LIMIT ?
            """, (min_resolved, limit)).fetchall()
        board = []
        for rank, row in enumerate(rows, 1):
            entry = dict(row)
            entry["rank"] = rank
            board.append(entry)
        return board

    # ── Predictions ──────────────────────────────────────────

    def insert_prediction(self, prediction: Prediction) -> int:
        with self.db._connect() as conn:
            cursor = conn.execute(self.db._returning_id("""
                INSERT INTO predictions (agent_id, market_id, prediction,
                    confidence, price_at_prediction, research_cost,
                    reasoning, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """), (
                prediction.agent_id, prediction.market_id,
                prediction.prediction.upper(), prediction.confidence,
                prediction.price_at_prediction, prediction.research_cost,
                prediction.reasoning, prediction.created_at or _now(),
            ))
            return self.db._last_id(cursor)

    def get_prediction(self, prediction_id: int) -> Optional[Dict[str, Any]]:
        with self.db._connect() as conn:
            row = conn.execute(
                "SELECT * FROM predictions WHERE id=?", (prediction_id,),
            ).fetchone()
            return _row(row) if row else None

    def get_unsettled_predictions(self, market_id: int) -> List[Dict[str, Any]]:
        with self.db._connect() as conn:
            rows = conn.execute("""
                SELECT * FROM predictions
                WHERE market_id=? AND outcome IS NULL
                ORDER BY id
            """, (market_id,)).fetchall()
            return [_row(r) for r in rows]

    def settle_prediction(self, prediction_id: int, outcome: str,
                          correct: bool, profit_loss: float,
                          resolved_at: Optional[str] = None) -> bool:
        """Record settlement atomically. Returns False if already settled.

        ``resolved_at`` is stored to the microsecond and ``settle_seq``
        numbers settlements in the order they were written, so streaks see
        the true order even when several land within one second.
        """
        stamp = (to_utc_iso(resolved_at, precise=True)
                 or to_utc_iso(datetime.now(timezone.utc), precise=True))
        with self.db._connect() as conn:
            cursor = conn.execute("""
                UPDATE predictions SET outcome=?, correct=?, profit_loss=?, resolved_at=?,
                    settle_seq=(SELECT COALESCE(MAX(settle_seq), 0) + 1 FROM predictions)
                WHERE id=? AND outcome IS NULL
            """, (outcome, 1 if correct else 0, profit_loss, stamp, prediction_id))
            return cursor.rowcount == 1

    def get_resolved_predictions(self, agent_id: int) -> List[Dict[str, Any]]:
        """An agent's settled predictions, oldest resolution first."""
        with self.db._connect() as conn:
            rows = conn.execute("""
                SELECT * FROM predictions
                WHERE agent_id=? AND correct IS NOT NULL
                ORDER BY resolved_at, settle_seq, id
            """, (agent_id,)).fetchall()
            return [_row(r) for r in rows]

    def get_predictions(self, agent_id: Optional[int] = None,
                        market_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """Predictions with settled ones first, in resolution order."""
        query = "SELECT * FROM predictions WHERE 1=1"
        params: list = []
        if agent_id is not None:
            query += " AND agent_id=?"
            params.append(agent_id)
        if market_id is not None:
            query += " AND market_id=?"
            params.append(market_id)
        query += " ORDER BY (resolved_at IS NULL), resolved_at, settle_seq, id"
        with self.db._connect() as conn:
            rows = conn.execute(query, params).fetchall()
            return [_row(r) for r in rows]

    # ── Job Logs ─────────────────────────────────────────────

    def insert_job_log(self, log: JobLog) -> int:
        with self.db._connect() as conn:
            cursor = conn.execute(self.db._returning_id("""
                INSERT INTO job_logs (job_name, status, started_at,
                    completed_at, duration_seconds, items_processed,
                    summary, error)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """), (
                log.job_name, log.status, log.started_at,
                log.completed_at, log.duration_seconds,
                log.items_processed, log.summary, log.error,
            ))
            return self.db._last_id(cursor)

    def get_job_logs(self, job_name: Optional[str] = None,
                     limit: int = 50) -> List[Dict[str, Any]]:
        with self.db._connect() as conn:
            if job_name:
                rows = conn.execute("""
                    SELECT * FROM job_logs WHERE job_name=?
                    ORDER BY started_at DESC LIMIT ?
                """, (job_name, limit)).fetchall()
            else:
                rows = conn.execute("""
                    SELECT * FROM job_logs ORDER BY started_at DESC LIMIT ?
                """, (limit,)).fetchall()
            return [dict(r) for r in rows]
