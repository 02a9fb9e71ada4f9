"""Configuration dataclasses and .env loading for Forecast Arena."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import os

from dotenv import load_dotenv

load_dotenv()

# Project root
PROJECT_DIR = Path(__file__).resolve().parent
DATA_DIR = PROJECT_DIR / "data"
DB_PATH = DATA_DIR / "forecast_arena.db"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return float(raw)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return int(raw)


@dataclass
class PolymarketConfig:
    gamma_url: str = "https://gamma-api.polymarket.com"
    timeout_seconds: int = 30

    @classmethod
    def from_env(cls) -> PolymarketConfig:
        return cls(
            gamma_url=os.getenv("POLYMARKET_GAMMA_URL", cls.gamma_url),
        )


@dataclass
class SettlementConfig:
    policy: str = "theoretical_stake"       # or "flat_multiple"
    stake: float = 10.0                      # theoretical $ per prediction
    price_floor: float = 0.01                # minimum price_at_prediction
    outcome_policy: str = "price"            # or "label"
    resolved_threshold: float = 0.99         # yes/no price that counts as settled
    resolved_floor: float = 0.01             # yes price that counts as NO

    @classmethod
    def from_env(cls) -> SettlementConfig:
        return cls(
            policy=os.getenv("SETTLEMENT_POLICY", cls.policy),
            stake=_env_float("SETTLEMENT_STAKE", cls.stake),
            price_floor=_env_float("SETTLEMENT_PRICE_FLOOR", cls.price_floor),
            outcome_policy=os.getenv("OUTCOME_POLICY", cls.outcome_policy),
        )


@dataclass
class ResolutionConfig:
    rate_limit_delay: float = 1.0            # seconds between feed fetches
    max_fetch_attempts: int = 3
    backoff_base_seconds: float = 2.0        # 2s, 4s, 8s ...
    cycle_budget_seconds: float = 300.0      # stop picking up markets after this

    @classmethod
    def from_env(cls) -> ResolutionConfig:
        return cls(
            rate_limit_delay=_env_float("RESOLUTION_RATE_LIMIT_DELAY", cls.rate_limit_delay),
            max_fetch_attempts=_env_int("RESOLUTION_MAX_FETCH_ATTEMPTS", cls.max_fetch_attempts),
            cycle_budget_seconds=_env_float("RESOLUTION_CYCLE_BUDGET", cls.cycle_budget_seconds),
        )


@dataclass
class SyncConfig:
    max_pages: int = 5
    page_size: int = 50


@dataclass
class SchedulerConfig:
    resolution_interval_minutes: int = 15
    sync_interval_minutes: int = 30


@dataclass
class SlackConfig:
    webhook_url: str = ""

    @classmethod
    def from_env(cls) -> SlackConfig:
        return cls(webhook_url=os.getenv("SLACK_WEBHOOK_URL", ""))


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    cron_secret: str = ""

    @classmethod
    def from_env(cls) -> ServerConfig:
        return cls(
            host=os.getenv("HOST", cls.host),
            port=_env_int("PORT", cls.port),
            cron_secret=os.getenv("CRON_SECRET", ""),
        )


@dataclass
class AppConfig:
    polymarket: PolymarketConfig = field(default_factory=PolymarketConfig)
    settlement: SettlementConfig = field(default_factory=SettlementConfig)
    resolution: ResolutionConfig = field(default_factory=ResolutionConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    slack: SlackConfig = field(default_factory=SlackConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    db_path: Path = DB_PATH
    database_url: Optional[str] = None

    @classmethod
    def from_env(cls) -> AppConfig:
        return cls(
            polymarket=PolymarketConfig.from_env(),
            settlement=SettlementConfig.from_env(),
            resolution=ResolutionConfig.from_env(),
            slack=SlackConfig.from_env(),
            server=ServerConfig.from_env(),
            database_url=os.getenv("DATABASE_URL") or None,
        )


def load_config() -> AppConfig:
    """Load configuration from environment variables."""
    return AppConfig.from_env()
