"""
core/monitor.py
---------------
Read-only exit monitor.

Polls the store and a REST price source and reports, per active position,
which exit rule the engine would apply at the current price.  It never
writes: the engine owns every state transition.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from core.context import TradingContext
from models.position import PositionSetup
from modules.position_machine import crossed_down, crossed_up
from modules.rest_client import PriceFetcher
from modules.store_sync import StoreSynchronizer


def pending_exit(setup: PositionSetup, price: float) -> Optional[str]:
    """Name of the rule that fires for `setup` at `price`, if any."""
    if not setup.reached_target1:
        if crossed_up(setup, price, setup.target1):
            return "TARGET1"
        if crossed_down(setup, price, setup.risk_stop):
            return "LOSS"
        return None
    if crossed_up(setup, price, setup.target2):
        return "WIN"
    if crossed_down(setup, price, setup.stop):
        return "BREAKEVEN"
    return None


class ExitMonitor:

    def __init__(
        self,
        ctx: TradingContext,
        *,
        synchronizer: StoreSynchronizer,
        fetcher: PriceFetcher,
        interval: float = 5.0,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if not synchronizer.read_only:
            raise ValueError("ExitMonitor requires a read-only StoreSynchronizer")
        self.ctx = ctx
        self.synchronizer = synchronizer
        self.fetcher = fetcher
        self.interval = interval
        self.logger = logger or logging.getLogger(self.__class__.__name__)
        self.check_count = 0
        self._stop = asyncio.Event()

    async def check_once(self) -> Dict[str, str]:
        """One poll; returns {asset: rule} for every rule that would fire."""
        self.check_count += 1
        await self.synchronizer.load()
        if self.ctx.active_count() == 0:
            self.logger.debug("Check #%d - no active positions", self.check_count)
            return {}

        prices = await self.fetcher.get_current_prices()
        if not prices:
            self.logger.warning("Check #%d - no prices available", self.check_count)
            return {}

        pending: Dict[str, str] = {}
        for asset, setup in self.ctx.active.items():
            if setup is None:
                continue
            price = prices.get(asset)
            if not price or price <= 0:
                continue
            rule = pending_exit(setup, price)
            if rule:
                pending[asset] = rule
                self.logger.info(
                    "👀 [%s] %s would fire @ %.2f (engine resolves it)",
                    asset.upper(), rule, price,
                )
            else:
                self.logger.debug(
                    "[%s] %.2f - stop %.2f, T1 %.2f, T2 %.2f",
                    asset.upper(), price, setup.stop, setup.target1, setup.target2,
                )
        return pending

    async def run(self) -> None:
        self.logger.info("🔍 Exit monitor started (every %.1fs, read-only)", self.interval)
        while not self._stop.is_set():
            await self.check_once()
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
        await self.shutdown()

    def stop(self) -> None:
        self._stop.set()

    async def shutdown(self) -> None:
        self.logger.info("Exit monitor stopping")
        await self.fetcher.close()
        await self.synchronizer.close()
