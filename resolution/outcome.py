"""Outcome classification for concluded prediction markets.

A market is only reported as resolved when the feed says it is closed AND
it carries an unambiguous result. Two policies are supported:

- PriceThresholdPolicy (default): the final outcome prices have converged
  to an extreme (yes >= 0.99, no >= 0.99, or yes <= 0.01).
- LabelPolicy: the feed carries an explicit outcome label.

A closed market with neither a label nor extreme prices is Unresolved;
the classifier never guesses.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

YES = "YES"
NO = "NO"
OUTCOMES = (YES, NO)


@dataclass(frozen=True)
class MarketSnapshot:
    """The fields of a live feed payload that decide resolution."""
    closed: bool = False
    outcome_label: Optional[str] = None
    yes_price: Optional[float] = None
    no_price: Optional[float] = None

    @classmethod
    def from_gamma(cls, payload: Dict[str, Any]) -> MarketSnapshot:
        """Build a snapshot from a Gamma ``/markets/{id}`` response.

        ``outcomePrices`` arrives as a JSON-encoded list of strings
        (``'["0.99", "0.01"]'``) or occasionally as a plain list.
        Anything unparseable becomes ``None``. The result label is read from
        ``outcome_label``, falling back to ``outcome``.
        """
        yes_price, no_price = parse_outcome_prices(payload.get("outcomePrices"))
        label = payload.get("outcome_label")
        if label is None:
            label = payload.get("outcome")
        if label is not None and not isinstance(label, str):
            label = str(label)
        return cls(
            closed=bool(payload.get("closed", False)),
            outcome_label=label,
            yes_price=yes_price,
            no_price=no_price,
        )


@dataclass(frozen=True)
class Resolution:
    resolved: bool
    outcome: Optional[str] = None

    @classmethod
    def unresolved(cls) -> Resolution:
        return cls(resolved=False)

    @classmethod
    def of(cls, outcome: str) -> Resolution:
        return cls(resolved=True, outcome=outcome)


def _to_price(value: Any) -> Optional[float]:
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if price != price:  # NaN
        return None
    return price


def parse_outcome_prices(raw: Any) -> tuple:
    """Return ``(yes_price, no_price)`` from a Gamma ``outcomePrices`` value."""
    if raw is None:
        return None, None
    prices = raw
    if isinstance(raw, str):
        try:
            prices = json.loads(raw)
        except json.JSONDecodeError:
            return None, None
    if not isinstance(prices, (list, tuple)):
        return None, None
    yes_price = _to_price(prices[0]) if len(prices) >= 1 else None
    no_price = _to_price(prices[1]) if len(prices) >= 2 else None
    return yes_price, no_price


def map_outcome_label(label: str) -> str:
    """Map a free-form feed label to YES/NO."""
    upper = label.strip().upper()
    if "YES" in upper or upper == "1" or upper == "TRUE":
        return YES
    return NO


class OutcomePolicy(ABC):
    name: str = ""

    @abstractmethod
    def classify(self, snapshot: MarketSnapshot) -> Resolution:
        ...


class LabelPolicy(OutcomePolicy):
    name = "label"

    def classify(self, snapshot: MarketSnapshot) -> Resolution:
        if not snapshot.closed:
            return Resolution.unresolved()
        if not snapshot.outcome_label or not snapshot.outcome_label.strip():
            return Resolution.unresolved()
        return Resolution.of(map_outcome_label(snapshot.outcome_label))


class PriceThresholdPolicy(OutcomePolicy):
    name = "price"

    def __init__(self, threshold: float = 0.99, floor: float = 0.01) -> None:
        self.threshold = threshold
        self.floor = floor

    def classify(self, snapshot: MarketSnapshot) -> Resolution:
        if not snapshot.closed:
            return Resolution.unresolved()
        yes_price = snapshot.yes_price
        no_price = snapshot.no_price
        if yes_price is not None and yes_price >= self.threshold:
            return Resolution.of(YES)
        if no_price is not None and no_price >= self.threshold:
            return Resolution.of(NO)
        if yes_price is not None and yes_price <= self.floor:
            return Resolution.of(NO)
        return Resolution.unresolved()


def get_outcome_policy(name: str = "price", threshold: float = 0.99,
                       floor: float = 0.01) -> OutcomePolicy:
    """Return an outcome policy by name ("price" or "label")."""
    if name == PriceThresholdPolicy.name:
        return PriceThresholdPolicy(threshold=threshold, floor=floor)
    if name == LabelPolicy.name:
        return LabelPolicy()
    raise ValueError(f"Unknown outcome policy: {name!r}")


def classify(snapshot: MarketSnapshot,
             policy: Optional[OutcomePolicy] = None) -> Resolution:
    """Classify a snapshot with the given policy (price threshold by default)."""
    return (policy or PriceThresholdPolicy()).classify(snapshot)
