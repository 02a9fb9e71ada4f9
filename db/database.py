"""Database manager with dual SQLite / PostgreSQL backend.

When DATABASE_URL is provided, uses PostgreSQL via psycopg2.
Otherwise, falls back to SQLite for local development and tests.

The _PgConnectionWrapper class bridges psycopg2's cursor-based API
to match sqlite3's conn.execute() pattern, so queries.py is written
once for both backends.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Optional
import sqlite3


# ---------------------------------------------------------------------------
# PostgreSQL connection wrapper
# ---------------------------------------------------------------------------

class _PgConnectionWrapper:
    """Wraps a psycopg2 connection to match sqlite3's conn.execute() API.

    Also translates ``?`` placeholders (sqlite3) to ``%s`` (psycopg2).
    """

    def __init__(self, pg_conn) -> None:
        self._conn = pg_conn

    def execute(self, sql: str, params=None):
        # Escape literal % first so psycopg2 doesn't read them as format
        # specifiers, then swap placeholders.
        escaped = sql.replace("%", "%%")
        translated = escaped.replace("?", "%s")
        cursor = self._conn.cursor()
        cursor.execute(translated, params or ())
        return cursor

    def commit(self) -> None:
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()


# ---------------------------------------------------------------------------
# Database manager
# ---------------------------------------------------------------------------

_TABLES = ("job_logs", "predictions", "agents", "markets")


class DatabaseManager:
    def __init__(self, db_path: Optional[Path] = None,
                 database_url: Optional[str] = None) -> None:
        self.database_url = database_url
        self.db_path = db_path

        if self.database_url:
            self._backend = "postgres"
        else:
            self._backend = "sqlite"
            if self.db_path is None:
                raise ValueError("db_path is required when no database_url is given")
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._ensure_schema()

    @property
    def backend(self) -> str:
        return self._backend

    # ── Connection ────────────────────────────────────────────

    @contextmanager
    def _connect(self):
        """Yield a connection-like object for the active backend.

        Both backends commit on clean exit and roll back on exception.
        """
        if self._backend == "postgres":
            import psycopg2
            from psycopg2.extras import RealDictCursor

            conn = psycopg2.connect(self.database_url,
                                    cursor_factory=RealDictCursor)
            wrapper = _PgConnectionWrapper(conn)
            try:
                yield wrapper
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                conn.close()
        else:
            conn = sqlite3.connect(str(self.db_path))
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA foreign_keys=ON")
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                conn.close()

    def ping(self) -> bool:
        """Return True if the store answers a trivial query."""
        try:
            with self._connect() as conn:
                conn.execute("SELECT 1")
            return True
        except Exception:
            return False

    # ── Helpers for queries.py ────────────────────────────────

    def _returning_id(self, sql: str) -> str:
        """Append ``RETURNING id`` to an INSERT for PostgreSQL."""
        if self._backend == "postgres":
            return sql.rstrip() + " RETURNING id"
        return sql

    def _last_id(self, cursor) -> int:
        """Get the auto-generated id after an INSERT."""
        if self._backend == "postgres":
            row = cursor.fetchone()
            if row is None:
                return 0
            return row["id"] if isinstance(row, dict) else row[0]
        return cursor.lastrowid

    # ── Schema ────────────────────────────────────────────────

    def _ensure_schema(self) -> None:
        if self._backend == "postgres":
            self._ensure_schema_postgres()
        else:
            self._ensure_schema_sqlite()

    def _ensure_schema_sqlite(self) -> None:
        with self._connect() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS markets (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    platform_id TEXT NOT NULL UNIQUE,
                    slug TEXT DEFAULT '',
                    question TEXT NOT NULL,
                    description TEXT DEFAULT '',
                    end_date TEXT,
                    resolved INTEGER NOT NULL DEFAULT 0,
                    outcome TEXT CHECK (outcome IN ('YES', 'NO')),
                    resolved_at TEXT,
                    yes_price REAL,
                    no_price REAL,
                    volume REAL,
                    liquidity REAL,
                    last_updated TEXT
                );

                CREATE TABLE IF NOT EXISTS agents (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    strategy TEXT DEFAULT '',
                    accuracy REAL DEFAULT 0,
                    roi REAL DEFAULT 0,
                    total_profit_loss REAL DEFAULT 0,
                    total_predictions INTEGER DEFAULT 0,
                    resolved_predictions INTEGER DEFAULT 0,
                    correct_predictions INTEGER DEFAULT 0,
                    current_streak INTEGER DEFAULT 0,
                    longest_streak INTEGER DEFAULT 0,
                    stats_updated_at TEXT,
                    created_at TEXT DEFAULT (datetime('now'))
                );

                CREATE TABLE IF NOT EXISTS predictions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    agent_id INTEGER NOT NULL REFERENCES agents(id),
                    market_id INTEGER NOT NULL REFERENCES markets(id),
                    prediction TEXT NOT NULL CHECK (prediction IN ('YES', 'NO')),
                    confidence REAL,
                    price_at_prediction REAL,
                    research_cost REAL DEFAULT 0,
                    reasoning TEXT DEFAULT '',
                    created_at TEXT DEFAULT (datetime('now')),
                    outcome TEXT CHECK (outcome IN ('YES', 'NO')),
                    correct INTEGER,
                    profit_loss REAL,
                    resolved_at TEXT,
                    settle_seq INTEGER
                );

                CREATE TABLE IF NOT EXISTS job_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    job_name TEXT NOT NULL,
                    status TEXT NOT NULL,
                    started_at TEXT,
                    completed_at TEXT,
                    duration_seconds REAL,
                    items_processed INTEGER DEFAULT 0,
                    summary TEXT DEFAULT '',
                    error TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_markets_resolved_end
                    ON markets(resolved, end_date);
                CREATE INDEX IF NOT EXISTS idx_predictions_market_outcome
                    ON predictions(market_id, outcome);
                CREATE INDEX IF NOT EXISTS idx_predictions_agent_resolved
                    ON predictions(agent_id, resolved_at);
                CREATE INDEX IF NOT EXISTS idx_job_logs_name
                    ON job_logs(job_name, started_at);
            """)

            # Migration: add settle_seq column to existing databases
            try:
                conn.execute("ALTER TABLE predictions ADD COLUMN settle_seq INTEGER")
            except sqlite3.OperationalError:
                pass  # Column already exists

    def _ensure_schema_postgres(self) -> None:
        with self._connect() as conn:
            # psycopg2 has no executescript(), one statement per call.
            conn.execute("""
                CREATE TABLE IF NOT EXISTS markets (
                    id SERIAL PRIMARY KEY,
                    platform_id TEXT NOT NULL UNIQUE,
                    slug TEXT DEFAULT '',
                    question TEXT NOT NULL,
                    description TEXT DEFAULT '',
                    end_date TEXT,
                    resolved INTEGER NOT NULL DEFAULT 0,
                    outcome TEXT CHECK (outcome IN ('YES', 'NO')),
                    resolved_at TEXT,
                    yes_price DOUBLE PRECISION,
                    no_price DOUBLE PRECISION,
                    volume DOUBLE PRECISION,
                    liquidity DOUBLE PRECISION,
                    last_updated TEXT
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS agents (
                    id SERIAL PRIMARY KEY,
                    name TEXT NOT NULL,
                    strategy TEXT DEFAULT '',
                    accuracy DOUBLE PRECISION DEFAULT 0,
                    roi DOUBLE PRECISION DEFAULT 0,
                    total_profit_loss DOUBLE PRECISION DEFAULT 0,
                    total_predictions INTEGER DEFAULT 0,
                    resolved_predictions INTEGER DEFAULT 0,
                    correct_predictions INTEGER DEFAULT 0,
                    current_streak INTEGER DEFAULT 0,
                    longest_streak INTEGER DEFAULT 0,
                    stats_updated_at TEXT,
                    created_at TEXT DEFAULT ''
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS predictions (
                    id SERIAL PRIMARY KEY,
                    agent_id INTEGER NOT NULL REFERENCES agents(id),
                    market_id INTEGER NOT NULL REFERENCES markets(id),
                    prediction TEXT NOT NULL CHECK (prediction IN ('YES', 'NO')),
                    confidence DOUBLE PRECISION,
                    price_at_prediction DOUBLE PRECISION,
                    research_cost DOUBLE PRECISION DEFAULT 0,
                    reasoning TEXT DEFAULT '',
                    created_at TEXT DEFAULT '',
                    outcome TEXT CHECK (outcome IN ('YES', 'NO')),
                    correct INTEGER,
                    profit_loss DOUBLE PRECISION,
                    resolved_at TEXT,
                    settle_seq INTEGER
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS job_logs (
                    id SERIAL PRIMARY KEY,
                    job_name TEXT NOT NULL,
                    status TEXT NOT NULL,
                    started_at TEXT,
                    completed_at TEXT,
                    duration_seconds DOUBLE PRECISION,
                    items_processed INTEGER DEFAULT 0,
                    summary TEXT DEFAULT '',
                    error TEXT
                )
            """)

            # Migration for databases created before settle_seq existed
            conn.execute("ALTER TABLE predictions ADD COLUMN IF NOT EXISTS settle_seq INTEGER")

            # Indexes
            conn.execute("CREATE INDEX IF NOT EXISTS idx_markets_resolved_end ON markets(resolved, end_date)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_predictions_market_outcome ON predictions(market_id, outcome)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_predictions_agent_resolved ON predictions(agent_id, resolved_at)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_job_logs_name ON job_logs(job_name, started_at)")

    def truncate_all(self) -> None:
        """Delete every row. Used by tests that share a PostgreSQL database."""
        with self._connect() as conn:
            for table in _TABLES:
                if self._backend == "postgres":
                    conn.execute(f"TRUNCATE {table} RESTART IDENTITY CASCADE")
                else:
                    conn.execute(f"DELETE FROM {table}")
