"""Polymarket Gamma API client.

Gamma API: https://gamma-api.polymarket.com (no auth required)
  - /markets: paginated market discovery (used by the sync job)
  - /markets/{id}: one market's live state (used by the resolution job)

A closed market carries ``closed: true`` and its final ``outcomePrices``
(a JSON-encoded list of strings, yes first).
"""

from __future__ import annotations

from typing import Any, Dict, List

import requests

from config import PolymarketConfig


class PolymarketClient:
    def __init__(self, config: PolymarketConfig) -> None:
        self.config = config
        self.gamma_url = config.gamma_url.rstrip("/")
        self.timeout = config.timeout_seconds
        self.session = requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "User-Agent": "ForecastArena-Resolver/1.0",
        })

    def get_gamma_markets(self, limit: int = 100,
                          offset: int = 0,
                          active: bool = True,
                          closed: bool = False) -> List[Dict[str, Any]]:
        """Fetch markets from Gamma API with pagination."""
        params: Dict[str, Any] = {
            "limit": limit,
            "offset": offset,
            "active": str(active).lower(),
            "closed": str(closed).lower(),
        }
        resp = self.session.get(
            f"{self.gamma_url}/markets",
            params=params,
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def get_all_active_markets(self, max_pages: int = 10,
                               page_size: int = 100) -> List[Dict[str, Any]]:
        """Paginate through all active, open Gamma markets."""
        all_markets: List[Dict[str, Any]] = []
        for page in range(max_pages):
            markets = self.get_gamma_markets(
                limit=page_size,
                offset=page * page_size,
                active=True,
            )
            if not markets:
                break
            all_markets.extend(markets)
            if len(markets) < page_size:
                break
        return all_markets

    def get_gamma_market(self, market_id: str) -> Dict[str, Any]:
        """Fetch a single market's current state by its Gamma id.

        Raises requests.HTTPError on non-2xx responses and
        requests.RequestException on network failure.
        """
        resp = self.session.get(
            f"{self.gamma_url}/markets/{market_id}",
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def close(self) -> None:
        self.session.close()

    def health_check(self) -> bool:
        """Test connectivity to the Gamma API."""
        try:
            resp = self.session.get(
                f"{self.gamma_url}/markets",
                params={"limit": 1},
                timeout=10,
            )
            return resp.status_code == 200
        except requests.RequestException:
            return False
