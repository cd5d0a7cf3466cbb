"""
signal_generator.py
-------------------
Admission gate for new paper positions.

A position may open for an asset only when its slot is empty, the per-asset
cooldown has elapsed and the scored confidence reaches the active risk
preset's minimum.  Momentum comes from the injected strategy; with too little
history the strategy returns nothing and admission is deferred.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Callable, Optional

from core.context import TradingContext
from models.position import EntryBand, PositionSetup
from modules.strategy.base import BaseStrategy
from modules.strategy.momentum import MomentumStrategy
from modules.trade_planner import RISK_PRESETS, RiskPreset, TradePlanner
from utils.session import current_session


DEFAULT_COOLDOWN_SECONDS = 60.0
BASE_CONFIDENCE_MIN = 8
BASE_CONFIDENCE_MAX = 16  # exclusive
TREND_BONUS = 2
VOLATILITY_BONUS = 3


class SignalGenerator:

    def __init__(
        self,
        preset: RiskPreset = RISK_PRESETS["conservative"],
        *,
        strategy: Optional[BaseStrategy] = None,
        trade_planner: Optional[TradePlanner] = None,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], float]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.preset = preset
        self.strategy = strategy or MomentumStrategy()
        self.trade_planner = trade_planner or TradePlanner(preset)
        self.cooldown_seconds = cooldown_seconds
        self.rng = rng or random.Random()
        self.clock = clock or time.time
        self.logger = logger or logging.getLogger(__name__)

    # ------------------------------------------------------------------ #
    def score(self, ctx: TradingContext, asset: str, momentum: float) -> int:
        regime = ctx.regimes[asset]
        confidence = self.rng.randrange(BASE_CONFIDENCE_MIN, BASE_CONFIDENCE_MAX)
        if regime.condition == "TRENDING_UP" and momentum > 0:
            confidence += TREND_BONUS
        elif regime.condition == "TRENDING_DOWN" and momentum < 0:
            confidence += TREND_BONUS
        if regime.volatility in ("HIGH", "EXTREME"):
            confidence += VOLATILITY_BONUS
        return confidence

    def evaluate(
        self, ctx: TradingContext, asset: str, price: float
    ) -> Optional[PositionSetup]:
        """Open and return a new PositionSetup, or None when admission is refused."""
        if ctx.active.get(asset) is not None:
            return None
        now = self.clock()
        if now - ctx.last_signal_at.get(asset, 0.0) < self.cooldown_seconds:
            return None
        if price is None or price <= 0:
            return None

        regime = ctx.regimes[asset]
        signal = self.strategy.generate_signal(ctx.window(asset), asset, regime)
        if not signal:
            self.logger.debug("[%s] not enough history for momentum; deferring", asset)
            return None

        momentum = signal["momentum"]
        confidence = self.score(ctx, asset, momentum)
        if confidence < self.preset.min_confidence:
            self.logger.debug(
                "[%s] confidence %s below %s minimum %s",
                asset, confidence, self.preset.name, self.preset.min_confidence,
            )
            return None

        direction = signal["direction"]
        levels = self.trade_planner.plan_levels(price, direction)
        setup = PositionSetup(
            asset=asset,
            direction=direction,
            entry_price=price,
            entry=EntryBand(min=levels["entry_min"], max=levels["entry_max"]),
            stop=levels["stop"],
            target1=levels["target1"],
            target2=levels["target2"],
            confidence=confidence,
            opened_at=int(now * 1000),
            market_condition=regime.condition,
            volatility_level=regime.volatility,
            session_active=current_session(),
        )
        ctx.active[asset] = setup
        ctx.last_signal_at[asset] = now

        self.logger.info(
            "🚀 Position opened: %s %s @ %.2f | T1 %.2f T2 %.2f Stop %.2f (conf %s)",
            asset.upper(), direction, price,
            setup.target1, setup.target2, setup.stop, confidence,
        )
        return setup
