"""Agent performance statistics derived from resolved predictions.

Stats are always recomputed from the agent's full history so they cannot
drift from the prediction rows they summarize.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .settlement import DEFAULT_STAKE


@dataclass(frozen=True)
class AgentStats:
    accuracy: float = 0.0
    roi: float = 0.0
    total_profit_loss: float = 0.0
    current_streak: int = 0
    longest_streak: int = 0
    resolved_count: int = 0
    correct_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _field(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def _is_resolved(item: Any) -> bool:
    return _field(item, "correct") is not None


def winning_streaks(results: Sequence[bool]) -> tuple:
    """Return ``(current, longest)`` winning streaks.

    ``results`` is ordered oldest to newest. The current streak counts
    consecutive wins back from the newest result; a loss there means 0.
    """
    longest = 0
    run = 0
    for won in results:
        run = run + 1 if won else 0
        longest = max(longest, run)

    current = 0
    for won in reversed(results):
        if not won:
            break
        current += 1
    return current, longest


def compute_agent_stats(predictions: Iterable[Any],
                        stake: float = DEFAULT_STAKE) -> AgentStats:
    """Recompute an agent's stats from its resolved predictions.

    ``predictions`` must be ordered by resolution time, oldest first. Items
    may be dicts (database rows) or objects exposing ``correct`` and
    ``profit_loss``; unresolved items are ignored.
    """
    resolved = [p for p in predictions if _is_resolved(p)]
    if not resolved:
        return AgentStats()

    results = [bool(_field(p, "correct")) for p in resolved]
    correct_count = sum(results)
    resolved_count = len(results)
    total = sum(float(_field(p, "profit_loss") or 0.0) for p in resolved)
    current, longest = winning_streaks(results)

    return AgentStats(
        accuracy=round(100.0 * correct_count / resolved_count, 2),
        roi=round(100.0 * total / (resolved_count * stake), 2),
        total_profit_loss=round(total, 2),
        current_streak=current,
        longest_streak=longest,
        resolved_count=resolved_count,
        correct_count=correct_count,
    )


def summarize_predictions(predictions: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Summary counters for a set of predictions (resolved or not).

    Predictions are expected oldest first; streaks only look at the
    resolved ones.
    """
    total = len(predictions)
    resolved = [p for p in predictions if _is_resolved(p)]
    correct = sum(1 for p in resolved if _field(p, "correct"))
    sides = [(_field(p, "prediction") or "").upper() for p in predictions]
    confidences: List[float] = [
        float(c) for c in (_field(p, "confidence") for p in predictions)
        if c is not None
    ]
    research_cost = sum(float(_field(p, "research_cost") or 0.0) for p in predictions)
    profit_loss = sum(float(_field(p, "profit_loss") or 0.0) for p in resolved)
    current, longest = winning_streaks([bool(_field(p, "correct")) for p in resolved])

    avg_confidence: Optional[float] = None
    if confidences:
        avg_confidence = round(100.0 * sum(confidences) / len(confidences), 1)

    return {
        "total": total,
        "resolved": len(resolved),
        "unresolved": total - len(resolved),
        "correct": correct,
        "incorrect": len(resolved) - correct,
        "accuracy": round(100.0 * correct / len(resolved), 2) if resolved else 0.0,
        "yes_predictions": sides.count("YES"),
        "no_predictions": sides.count("NO"),
        "total_research_cost": round(research_cost, 2),
        "total_profit_loss": round(profit_loss, 2),
        "avg_confidence": avg_confidence or 0.0,
        "current_streak": current,
        "longest_streak": longest,
    }
