"""Market Resolution Job.

One resolution cycle:

1. Fetch candidates: unresolved markets whose end date has passed.
2. For each candidate, fetch the live market from Gamma and classify it.
3. Mark resolved markets (conditional update, so concurrent cycles
   cannot both resolve the same market).
4. Settle every unsettled prediction on the market (conditional update,
   so a prediction is settled at most once).
5. Recompute stats for every agent whose prediction was just settled.

Markets are handled one at a time with a pause between feed fetches to
stay under Gamma's rate limits. A failure on one market or prediction is
logged and counted; only failing to read the candidate list aborts the
cycle. Resolved markets left with unsettled predictions by an
interrupted cycle are settled from their stored outcome first.

Schedule: every 15 minutes, or on demand via the cron endpoint.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set

from .base import BaseJob, JobResult, JobStatus
from config import ResolutionConfig, SettlementConfig
from db.queries import to_utc_iso
from resolution.outcome import MarketSnapshot, OutcomePolicy, get_outcome_policy
from resolution.settlement import SettlementPolicy, get_settlement_policy
from resolution.stats import compute_agent_stats

logger = logging.getLogger(__name__)


class ResolutionJob(BaseJob):
    def __init__(self, config: Optional[ResolutionConfig] = None,
                 settlement: Optional[SettlementConfig] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic) -> None:
        super().__init__(name="resolution", config=config or ResolutionConfig())
        self.settlement_config = settlement or SettlementConfig()
        self.outcome_policy: OutcomePolicy = get_outcome_policy(
            self.settlement_config.outcome_policy,
            threshold=self.settlement_config.resolved_threshold,
            floor=self.settlement_config.resolved_floor,
        )
        self.settlement_policy: SettlementPolicy = get_settlement_policy(
            self.settlement_config.policy,
            stake=self.settlement_config.stake,
            price_floor=self.settlement_config.price_floor,
        )
        self._sleep = sleep
        self._clock = clock

    def execute(self, context: Dict[str, Any]) -> JobResult:
        queries = context["queries"]
        client = context.get("polymarket_client")
        now: datetime = context.get("now") or datetime.now(timezone.utc)

        errors: List[str] = []
        settled_agents: Set[int] = set()
        markets_resolved = 0
        predictions_settled = 0

        # Leftovers from an interrupted cycle: resolved, not fully settled.
        for market in queries.get_resolved_markets_with_unsettled_predictions():
            count, agents = self._settle_market(queries, market, market["outcome"], errors)
            predictions_settled += count
            settled_agents.update(agents)

        # Fatal if the store is unreachable; BaseJob.run records the error.
        candidates = queries.get_markets_due_for_resolution(now)

        if candidates and not client:
            return self._result(
                markets_checked=0, markets_resolved=0,
                predictions_settled=predictions_settled,
                agents_updated=self._refresh_agents(queries, settled_agents, errors),
                errors=errors,
                note="no Polymarket client configured",
            )

        started = self._clock()
        checked = 0
        for index, market in enumerate(candidates):
            if self._clock() - started >= self.config.cycle_budget_seconds:
                logger.warning(
                    "Resolution cycle budget of %.0fs exhausted; %d markets left for next run",
                    self.config.cycle_budget_seconds, len(candidates) - index,
                )
                break
            if index > 0 and self.config.rate_limit_delay > 0:
                self._sleep(self.config.rate_limit_delay)

            checked += 1
            outcome = self._check_outcome(client, market, errors)
            if outcome is None:
                continue

            try:
                won = queries.resolve_market(market["id"], outcome, to_utc_iso(now))
            except Exception as e:
                logger.exception("Failed to persist resolution for market %s", market["id"])
                errors.append(f"Market {market['platform_id']}: persist failed: {e}")
                continue
            if not won:
                logger.info("Market %s already resolved by another run", market["id"])
                continue

            markets_resolved += 1
            logger.info("Market %s (%s) resolved to %s",
                        market["id"], market.get("question", ""), outcome)
            count, agents = self._settle_market(queries, market, outcome, errors)
            predictions_settled += count
            settled_agents.update(agents)

        agents_updated = self._refresh_agents(queries, settled_agents, errors)
        return self._result(
            markets_checked=checked,
            markets_resolved=markets_resolved,
            predictions_settled=predictions_settled,
            agents_updated=agents_updated,
            errors=errors,
        )

    # ── Steps ────────────────────────────────────────────────

    def _fetch_market(self, client: Any, platform_id: str) -> Dict[str, Any]:
        """Fetch from Gamma, retrying with exponential backoff."""
        attempts = max(1, self.config.max_fetch_attempts)
        attempt = 1
        while True:
            try:
                return client.get_gamma_market(platform_id)
            except Exception:
                if attempt >= attempts:
                    raise
                delay = self.config.backoff_base_seconds * (2 ** (attempt - 1))
                logger.warning("Fetch of market %s failed (attempt %d/%d), retrying in %.1fs",
                               platform_id, attempt, attempts, delay)
                self._sleep(delay)
                attempt += 1

    def _check_outcome(self, client: Any, market: Dict[str, Any],
                       errors: List[str]) -> Optional[str]:
        """Return the market's outcome, or None if unresolved or unreachable."""
        try:
            payload = self._fetch_market(client, market["platform_id"])
        except Exception as e:
            logger.warning("Skipping market %s: fetch failed: %s", market["platform_id"], e)
            errors.append(f"Market {market['platform_id']}: fetch failed: {e}")
            return None

        if not isinstance(payload, dict):
            logger.warning("Skipping market %s: unexpected payload type %s",
                           market["platform_id"], type(payload).__name__)
            return None

        verdict = self.outcome_policy.classify(MarketSnapshot.from_gamma(payload))
        if not verdict.resolved:
            logger.debug("Market %s not resolved yet", market["platform_id"])
            return None
        return verdict.outcome

    def _settle_market(self, queries: Any, market: Dict[str, Any], outcome: str,
                       errors: List[str]) -> tuple:
        """Settle a market's open predictions. Returns (count, agent ids)."""
        try:
            predictions = queries.get_unsettled_predictions(market["id"])
        except Exception as e:
            logger.exception("Failed to load predictions for market %s", market["id"])
            errors.append(f"Market {market['platform_id']}: loading predictions failed: {e}")
            return 0, set()

        settled = 0
        agents: Set[int] = set()
        for pred in predictions:
            try:
                result = self.settlement_policy.settle(
                    pred["prediction"], outcome,
                    pred.get("price_at_prediction"), pred.get("research_cost"),
                )
                if queries.settle_prediction(pred["id"], outcome, result.correct,
                                             round(result.profit_loss, 2)):
                    settled += 1
                    agents.add(pred["agent_id"])
            except Exception as e:
                logger.exception("Failed to settle prediction %s", pred.get("id"))
                errors.append(f"Prediction {pred.get('id')}: {e}")

        if predictions:
            logger.info("Settled %d/%d predictions for market %s",
                        settled, len(predictions), market["id"])
        return settled, agents

    def _refresh_agents(self, queries: Any, agent_ids: Set[int],
                        errors: List[str]) -> int:
        updated = 0
        for agent_id in sorted(agent_ids):
            try:
                history = queries.get_resolved_predictions(agent_id)
                stats = compute_agent_stats(history, stake=self.settlement_config.stake)
                if queries.update_agent_stats(agent_id, stats):
                    updated += 1
                    logger.info("Agent %s: %.2f%% accuracy, $%.2f P/L, streak %d",
                                agent_id, stats.accuracy, stats.total_profit_loss,
                                stats.current_streak)
            except Exception as e:
                logger.exception("Failed to refresh stats for agent %s", agent_id)
                errors.append(f"Agent {agent_id}: {e}")
        return updated

    def _result(self, markets_checked: int, markets_resolved: int,
                predictions_settled: int, agents_updated: int,
                errors: List[str], note: str = "") -> JobResult:
        error_summary = f" ({len(errors)} errors)" if errors else ""
        note_summary = f" [{note}]" if note else ""
        return JobResult(
            job_name=self.name,
            status=JobStatus.SUCCESS,
            items_processed=predictions_settled,
            summary=(
                f"Resolved {markets_resolved}/{markets_checked} markets, "
                f"settled {predictions_settled} predictions, "
                f"updated {agents_updated} agents{error_summary}.{note_summary}"
            ),
            data={
                "markets_checked": markets_checked,
                "markets_resolved": markets_resolved,
                "predictions_settled": predictions_settled,
                "agents_updated": agents_updated,
                "errors": len(errors),
                "error_messages": errors[:10],
            },
        )
