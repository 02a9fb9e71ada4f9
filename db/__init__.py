from .database import DatabaseManager
from .models import Agent, JobLog, Market, Prediction
from .queries import ArenaQueries

__all__ = [
    "DatabaseManager",
    "Market",
    "Agent",
    "Prediction",
    "JobLog",
    "ArenaQueries",
]
