"""Market Sync Job.

Pulls active Polymarket markets from Gamma and upserts them into the
markets table so the resolution job has end dates and last-seen prices to
work with. Sync never touches resolution fields.

Schedule: Every 30 minutes, and before each cron-triggered resolution.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .base import BaseJob, JobResult, JobStatus
from config import SyncConfig
from db.models import Market
from resolution.outcome import parse_outcome_prices

logger = logging.getLogger(__name__)


def _to_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (ValueError, TypeError):
        return default


class SyncJob(BaseJob):
    def __init__(self, config: Optional[SyncConfig] = None) -> None:
        super().__init__(name="sync", config=config or SyncConfig())

    def execute(self, context: Dict[str, Any]) -> JobResult:
        queries = context["queries"]
        polymarket_client = context.get("polymarket_client")

        if not polymarket_client:
            return JobResult(
                job_name=self.name,
                status=JobStatus.SUCCESS,
                summary="Skipped -- no Polymarket client configured.",
                items_processed=0,
            )

        # A feed outage fails the run; nothing has been written yet.
        raw_markets = polymarket_client.get_all_active_markets(
            max_pages=self.config.max_pages, page_size=self.config.page_size,
        )

        synced = 0
        errors: List[str] = []
        for raw in raw_markets:
            try:
                market = self._normalize(raw)
                if not market.platform_id or not market.question:
                    continue
                queries.upsert_market(market)
                synced += 1
            except Exception as e:
                logger.warning("Failed to sync market %s: %s", raw.get("id"), e)
                errors.append(f"Market {raw.get('id')}: {e}")

        logger.info("Synced %d/%d markets", synced, len(raw_markets))
        error_summary = f" ({len(errors)} errors)" if errors else ""
        return JobResult(
            job_name=self.name,
            status=JobStatus.SUCCESS,
            items_processed=synced,
            summary=f"Synced {synced} markets{error_summary}.",
            data={
                "markets_synced": synced,
                "markets_seen": len(raw_markets),
                "errors": errors[:10],
            },
        )

    def _normalize(self, raw: Dict[str, Any]) -> Market:
        """Convert a Gamma market payload to a Market row."""
        yes_price, no_price = parse_outcome_prices(raw.get("outcomePrices"))
        return Market(
            platform_id=str(raw.get("id", "")),
            slug=raw.get("slug") or raw.get("marketSlug") or "",
            question=raw.get("question", ""),
            description=raw.get("description") or "",
            end_date=raw.get("endDate") or raw.get("endDateIso"),
            yes_price=0.5 if yes_price is None else yes_price,
            no_price=0.5 if no_price is None else no_price,
            volume=_to_float(raw.get("volume", raw.get("volumeNum"))),
            liquidity=_to_float(raw.get("liquidity", raw.get("liquidityNum"))),
        )
