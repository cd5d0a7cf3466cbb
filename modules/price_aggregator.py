"""
price_aggregator.py
-------------------
Keeps the bounded rolling window of recent prices for each asset.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Callable, Optional

from core.context import TradingContext
from models.market import PriceSample, TickEvent

logger = logging.getLogger(__name__)


class PriceAggregator:
    """Appends ticks to the context's per-asset window (capacity 50, FIFO)."""

    def __init__(self, clock: Optional[Callable[[], float]] = None) -> None:
        self.clock = clock or time.time

    def ingest(self, ctx: TradingContext, tick: TickEvent) -> bool:
        """Return True when the tick was accepted."""
        return self.add_price(ctx, tick.asset, tick.price, tick.pct_change)

    def add_price(
        self, ctx: TradingContext, asset: str, price: float, pct_change: float = 0.0
    ) -> bool:
        if price is None or not math.isfinite(price) or price <= 0:
            logger.debug("Dropping non-positive price for %s: %s", asset, price)
            return False
        asset = asset.lower()
        ctx.current_prices[asset] = price
        ctx.window(asset).append(
            PriceSample(
                asset=asset,
                price=price,
                pct_change=pct_change or 0.0,
                received_at=self.clock(),
            )
        )
        return True
