"""
core/engine.py
--------------
The primary (and only writing) process: feed ticks in, positions out.

Per scan and per asset the order is fixed:

    regime → resolve exits on the active position → admission if the slot is empty

State-affecting transitions schedule a background push to the store; the
scan loop never waits on it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from core.context import TradingContext
from models.market import TickEvent
from modules.position_machine import PositionStateMachine
from modules.price_aggregator import PriceAggregator
from modules.regime_classifier import RegimeClassifier
from modules.signal_generator import SignalGenerator
from modules.store_sync import StoreSynchronizer
from modules.websocket_client import PriceFeedClient


class TradingEngine:

    def __init__(
        self,
        ctx: TradingContext,
        *,
        aggregator: PriceAggregator,
        classifier: RegimeClassifier,
        state_machine: PositionStateMachine,
        signal_generator: SignalGenerator,
        synchronizer: StoreSynchronizer,
        feed: Optional[PriceFeedClient] = None,
        scan_interval: float = 3.0,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.ctx = ctx
        self.aggregator = aggregator
        self.classifier = classifier
        self.state_machine = state_machine
        self.signal_generator = signal_generator
        self.synchronizer = synchronizer
        self.feed = feed
        self.scan_interval = scan_interval
        self.logger = logger or logging.getLogger(self.__class__.__name__)

        self.scan_count = 0
        self._stop = asyncio.Event()
        self._feed_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------ #
    def on_tick(self, tick: TickEvent) -> None:
        self.aggregator.ingest(self.ctx, tick)

    def scan_asset(self, asset: str) -> bool:
        """Run one scan step for `asset`; True when persisted state changed."""
        price = self.ctx.current_prices.get(asset, 0.0)
        if not price or price <= 0:
            return False

        self.classifier.classify(self.ctx, asset)

        changed = self.state_machine.evaluate(self.ctx, asset, price).changed_state
        if self.ctx.active.get(asset) is None:
            if self.signal_generator.evaluate(self.ctx, asset, price) is not None:
                changed = True
        return changed

    async def scan_once(self) -> None:
        self.scan_count += 1
        changed = False
        for asset in self.ctx.assets:
            try:
                changed = self.scan_asset(asset) or changed
            except Exception:
                self.logger.exception("[%s] scan step failed", asset)
        if changed:
            self.synchronizer.request_save()
        if self.scan_count % 20 == 0:
            self.logger.info(
                "Scan #%d - active %d, trades %d, win rate %.1f%%, total P&L %.2f",
                self.scan_count,
                self.ctx.active_count(),
                len(self.ctx.trades),
                self.ctx.performance.win_rate,
                self.ctx.performance.total_profit,
            )

    # ------------------------------------------------------------------ #
    async def start(self) -> None:
        self.logger.info("🚀 Trading engine starting for %s", ", ".join(self.ctx.assets))
        if not await self.synchronizer.load():
            self.logger.warning("Starting without a store snapshot; local state is empty")
        if self.feed is not None:
            self._feed_task = asyncio.create_task(self.feed.run())

    async def run(self) -> None:
        await self.start()
        self.logger.info("✅ Trading engine active (scan every %.1fs)", self.scan_interval)
        while not self._stop.is_set():
            await self.scan_once()
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.scan_interval)
            except asyncio.TimeoutError:
                pass
        await self.shutdown()

    def stop(self) -> None:
        self._stop.set()

    async def shutdown(self) -> None:
        """Stop the feed and make one best-effort final push."""
        self.logger.info("Shutting down trading engine")
        if self.feed is not None:
            await self.feed.graceful_shutdown()
        if self._feed_task is not None and not self._feed_task.done():
            self._feed_task.cancel()
            try:
                await self._feed_task
            except asyncio.CancelledError:
                pass
        await self.synchronizer.flush()
        await self.synchronizer.save()
        await self.synchronizer.close()
