"""
rest_client.py
--------------
Polling price source for processes that do not hold a websocket (the exit
monitor).  Primary source is the exchange ticker endpoint; after a few
consecutive failures the secondary source is tried, and as a last resort
recently cached prices are served.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Dict, Mapping, Optional

import aiohttp

PRIMARY_PRICE_URL = "https://api.binance.com/api/v3/ticker/price"
FALLBACK_PRICE_URL = "https://api.coinbase.com/v2/exchange-rates"

FALLBACK_AFTER_FAILURES = 3
STALE_PRICE_MAX_AGE = 30.0


class PriceFetcher:
    """Asynchronous REST price poller with fallback and stale-price cache."""

    def __init__(
        self,
        symbol_map: Mapping[str, str],
        logger: Optional[logging.Logger] = None,
        *,
        timeout: float = 5.0,
        session: Optional[aiohttp.ClientSession] = None,
        clock=time.time,
    ) -> None:
        # symbol_map: exchange symbol -> asset key, e.g. {"BTCUSDT": "btc"}
        self.symbol_map = {k.upper(): v for k, v in symbol_map.items()}
        self.logger = logger or logging.getLogger(self.__class__.__name__)
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.clock = clock
        self._session = session

        self.last_prices: Dict[str, float] = {}
        self.last_update: Optional[float] = None
        self.api_failures = 0

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    def _remember(self, prices: Dict[str, float]) -> Dict[str, float]:
        self.last_prices = prices
        self.last_update = self.clock()
        self.api_failures = 0
        return prices

    # -------------------------------------------------------------------- #
    async def fetch_primary(self) -> Optional[Dict[str, float]]:
        params = {"symbols": json.dumps(sorted(self.symbol_map), separators=(",", ":"))}
        try:
            session = await self._get_session()
            async with session.get(PRIMARY_PRICE_URL, params=params, timeout=self.timeout) as resp:
                resp.raise_for_status()
                data = await resp.json()
            prices = {
                self.symbol_map[item["symbol"].upper()]: float(item["price"])
                for item in data
                if item.get("symbol", "").upper() in self.symbol_map
            }
            if len(prices) != len(self.symbol_map) or min(prices.values()) <= 0:
                raise ValueError("incomplete price data from primary source")
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError, KeyError, TypeError) as exc:
            self.api_failures += 1
            self.logger.warning("Primary price API error (failure #%d): %s", self.api_failures, exc)
            return None
        return self._remember(prices)

    async def fetch_fallback(self) -> Optional[Dict[str, float]]:
        try:
            session = await self._get_session()
            prices: Dict[str, float] = {}
            for asset in self.symbol_map.values():
                async with session.get(
                    FALLBACK_PRICE_URL, params={"currency": asset.upper()}, timeout=self.timeout
                ) as resp:
                    resp.raise_for_status()
                    body = await resp.json()
                prices[asset] = float(body["data"]["rates"]["USD"])
            if min(prices.values()) <= 0:
                raise ValueError("non-positive price from fallback source")
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError, KeyError, TypeError) as exc:
            self.logger.error("Fallback price API error: %s", exc)
            return None
        self.logger.info("Fallback: using secondary price source")
        return self._remember(prices)

    async def get_current_prices(self) -> Optional[Dict[str, float]]:
        prices = await self.fetch_primary()
        if prices is None and self.api_failures >= FALLBACK_AFTER_FAILURES:
            prices = await self.fetch_fallback()
        if prices is None and self.last_update is not None:
            if self.clock() - self.last_update < STALE_PRICE_MAX_AGE:
                self.logger.warning("Using stale prices (price APIs unavailable)")
                return dict(self.last_prices)
        return prices

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
