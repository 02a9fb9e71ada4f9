"""Settlement of a single prediction against a resolved outcome.

Every agent is scored as if it had placed the same notional bet on every
prediction, so agents are compared on equal footing regardless of what they
actually spent.

Policies:
- TheoreticalStakePolicy (default): a $10 stake buys shares at
  ``price_at_prediction``. A winning share pays $1, so
  ``gross = stake * (1 / price - 1)``; a loss forfeits the stake.
  Research cost is subtracted either way.
- FlatMultiplePolicy: a correct call earns twice the research cost, an
  incorrect one loses it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from .outcome import OUTCOMES

DEFAULT_STAKE = 10.0
DEFAULT_PRICE_FLOOR = 0.01
# Price assumed when a prediction was recorded without one.
DEFAULT_PRICE = 0.5


@dataclass(frozen=True)
class Settlement:
    correct: bool
    profit_loss: float


def _check_side(value: str, label: str) -> str:
    side = (value or "").upper()
    if side not in OUTCOMES:
        raise ValueError(f"Invalid {label}: {value!r} (expected YES or NO)")
    return side


class SettlementPolicy(ABC):
    name: str = ""

    def settle(self, side: str, outcome: str,
               price_at_prediction: Optional[float] = None,
               research_cost: Optional[float] = 0.0) -> Settlement:
        """Settle one prediction. Raises ValueError on an invalid side/outcome."""
        side = _check_side(side, "prediction side")
        outcome = _check_side(outcome, "outcome")
        correct = side == outcome
        cost = max(0.0, float(research_cost or 0.0))
        return Settlement(
            correct=correct,
            profit_loss=self.profit_loss(correct, price_at_prediction, cost),
        )

    @abstractmethod
    def profit_loss(self, correct: bool, price_at_prediction: Optional[float],
                    research_cost: float) -> float:
        ...


class TheoreticalStakePolicy(SettlementPolicy):
    name = "theoretical_stake"

    def __init__(self, stake: float = DEFAULT_STAKE,
                 price_floor: float = DEFAULT_PRICE_FLOOR) -> None:
        if stake <= 0:
            raise ValueError("stake must be positive")
        if not 0 < price_floor <= 1:
            raise ValueError("price_floor must be in (0, 1]")
        self.stake = stake
        self.price_floor = price_floor

    def effective_price(self, price_at_prediction: Optional[float]) -> float:
        """Clamp the entry price into ``[price_floor, 1]``."""
        if price_at_prediction is None:
            return DEFAULT_PRICE
        return min(1.0, max(self.price_floor, float(price_at_prediction)))

    def profit_loss(self, correct: bool, price_at_prediction: Optional[float],
                    research_cost: float) -> float:
        if correct:
            price = self.effective_price(price_at_prediction)
            gross = self.stake * (1.0 / price - 1.0)
        else:
            gross = -self.stake
        return gross - research_cost


class FlatMultiplePolicy(SettlementPolicy):
    name = "flat_multiple"

    def __init__(self, multiple: float = 2.0) -> None:
        self.multiple = multiple

    def profit_loss(self, correct: bool, price_at_prediction: Optional[float],
                    research_cost: float) -> float:
        if correct:
            return research_cost * self.multiple
        return -research_cost


def get_settlement_policy(name: str = TheoreticalStakePolicy.name,
                          stake: float = DEFAULT_STAKE,
                          price_floor: float = DEFAULT_PRICE_FLOOR) -> SettlementPolicy:
    """Return a settlement policy by name."""
    if name == TheoreticalStakePolicy.name:
        return TheoreticalStakePolicy(stake=stake, price_floor=price_floor)
    if name == FlatMultiplePolicy.name:
        return FlatMultiplePolicy()
    raise ValueError(f"Unknown settlement policy: {name!r}")


def settle_prediction(side: str, outcome: str,
                      price_at_prediction: Optional[float] = None,
                      research_cost: Optional[float] = 0.0,
                      policy: Optional[SettlementPolicy] = None) -> Settlement:
    """Settle with the given policy (theoretical $10 stake by default)."""
    return (policy or TheoreticalStakePolicy()).settle(
        side, outcome, price_at_prediction, research_cost,
    )
