from .outcome import (
    NO, YES, LabelPolicy, MarketSnapshot, OutcomePolicy,
    PriceThresholdPolicy, Resolution, classify, get_outcome_policy,
)
from .settlement import (
    FlatMultiplePolicy, Settlement, SettlementPolicy,
    TheoreticalStakePolicy, get_settlement_policy, settle_prediction,
)
from .stats import AgentStats, compute_agent_stats, summarize_predictions

__all__ = [
    "YES",
    "NO",
    "MarketSnapshot",
    "Resolution",
    "OutcomePolicy",
    "LabelPolicy",
    "PriceThresholdPolicy",
    "classify",
    "get_outcome_policy",
    "Settlement",
    "SettlementPolicy",
    "TheoreticalStakePolicy",
    "FlatMultiplePolicy",
    "get_settlement_policy",
    "settle_prediction",
    "AgentStats",
    "compute_agent_stats",
    "summarize_predictions",
]
