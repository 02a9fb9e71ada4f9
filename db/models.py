"""Data models for markets, agents, predictions and job runs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class Market:
    """A Polymarket question tracked locally."""
    id: Optional[int] = None
    platform_id: str = ""               # Gamma market id
    slug: str = ""
    question: str = ""
    description: str = ""
    end_date: Optional[str] = None      # ISO-8601, UTC
    resolved: bool = False
    outcome: Optional[str] = None       # "YES" / "NO" once resolved
    resolved_at: Optional[str] = None
    yes_price: Optional[float] = None
    no_price: Optional[float] = None
    volume: Optional[float] = None
    liquidity: Optional[float] = None
    last_updated: Optional[str] = None


@dataclass
class Agent:
    """An AI forecaster. Stats fields are derived from its predictions."""
    id: Optional[int] = None
    name: str = ""
    strategy: str = ""
    accuracy: float = 0.0               # percent
    roi: float = 0.0                    # percent of theoretical stake
    total_profit_loss: float = 0.0
    total_predictions: int = 0
    resolved_predictions: int = 0
    correct_predictions: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    stats_updated_at: Optional[str] = None
    created_at: Optional[str] = None


@dataclass
class Prediction:
    """One agent's forecast on one market."""
    id: Optional[int] = None
    agent_id: Optional[int] = None
    market_id: Optional[int] = None
    prediction: str = ""                # "YES" or "NO"
    confidence: Optional[float] = None  # 0..1
    price_at_prediction: Optional[float] = None
    research_cost: float = 0.0
    reasoning: str = ""
    created_at: Optional[str] = None
    # Settlement (all unset until the market resolves)
    outcome: Optional[str] = None
    correct: Optional[bool] = None
    profit_loss: Optional[float] = None
    resolved_at: Optional[str] = None
    settle_seq: Optional[int] = None    # order in which settlements were written


@dataclass
class JobLog:
    """Execution log entry for a job run."""
    id: Optional[int] = None
    job_name: str = ""
    status: str = ""                    # running, success, error
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    duration_seconds: Optional[float] = None
    items_processed: int = 0
    summary: str = ""
    error: Optional[str] = None
