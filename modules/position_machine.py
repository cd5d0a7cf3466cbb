"""
position_machine.py
-------------------
Lifecycle of the single active paper position per asset.

    ACTIVE_PRE_T1 ──t1──▶ ACTIVE_POST_T1 ──t2──▶ WIN
          │                      └──stop (breakeven)──▶ BREAKEVEN
          └──original stop──▶ LOSS

Rules are evaluated in a fixed priority order on every tick and at most one
fires.  Target 2 is checked before the breakeven stop, so a price that
satisfies both resolves as a WIN.
"""

from __future__ import annotations

import enum
import logging
from typing import Optional

from core.context import TradingContext
from models.position import PositionSetup
from modules.outcome_recorder import OutcomeRecorder


class PositionState(str, enum.Enum):
    ACTIVE_PRE_T1 = "ACTIVE_PRE_T1"
    ACTIVE_POST_T1 = "ACTIVE_POST_T1"
    WIN = "WIN"
    LOSS = "LOSS"
    BREAKEVEN = "BREAKEVEN"


class Transition(str, enum.Enum):
    NONE = "NONE"
    BREAKEVEN_ARMED = "BREAKEVEN_ARMED"
    CLOSED = "CLOSED"

    @property
    def changed_state(self) -> bool:
        return self is not Transition.NONE


def state_of(setup: PositionSetup) -> PositionState:
    return PositionState.ACTIVE_POST_T1 if setup.reached_target1 else PositionState.ACTIVE_PRE_T1


def crossed_up(setup: PositionSetup, price: float, level: float) -> bool:
    """Price moved through `level` in the position's favour."""
    if setup.direction == "BULLISH":
        return price >= level
    return price <= level


def crossed_down(setup: PositionSetup, price: float, level: float) -> bool:
    """Price moved through `level` against the position."""
    if setup.direction == "BULLISH":
        return price <= level
    return price >= level


class PositionStateMachine:
    """Only writer of reachedTarget1 / stop / originalStop."""

    def __init__(
        self,
        recorder: OutcomeRecorder,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.recorder = recorder
        self.logger = logger or logging.getLogger(__name__)

    def evaluate(self, ctx: TradingContext, asset: str, price: float) -> Transition:
        setup = ctx.active.get(asset)
        if setup is None or not setup.is_active:
            return Transition.NONE
        if price is None or price <= 0:
            return Transition.NONE

        mid = setup.entry_midpoint

        if not setup.reached_target1:
            if crossed_up(setup, price, setup.target1):
                setup.reached_target1 = True
                setup.original_stop = setup.stop
                setup.stop = mid
                self.logger.info(
                    "🎯 [%s] TARGET 1 HIT @ %.2f - stop moved to breakeven %.2f",
                    asset.upper(), price, mid,
                )
                return Transition.BREAKEVEN_ARMED
            if crossed_down(setup, price, setup.risk_stop):
                loss = abs(price - mid)
                self._close(ctx, asset, setup, PositionState.LOSS, loss, price)
                self.logger.warning("❌ [%s] STOP LOSS HIT @ %.2f", asset.upper(), price)
                return Transition.CLOSED
            return Transition.NONE

        if not setup.reached_target2:
            if crossed_up(setup, price, setup.target2):
                profit = abs(setup.target2 - mid)
                self._close(ctx, asset, setup, PositionState.WIN, profit, price)
                self.logger.info(
                    "🚀 [%s] TARGET 2 HIT - WIN: +%.2f", asset.upper(), profit
                )
                return Transition.CLOSED
            if crossed_down(setup, price, setup.stop):
                self._close(ctx, asset, setup, PositionState.BREAKEVEN, 0.0, price)
                self.logger.info("🔄 [%s] BREAKEVEN STOP HIT @ %.2f", asset.upper(), price)
                return Transition.CLOSED
        return Transition.NONE

    def _close(
        self,
        ctx: TradingContext,
        asset: str,
        setup: PositionSetup,
        outcome: PositionState,
        profit: float,
        exit_price: float,
    ) -> None:
        if outcome is PositionState.WIN:
            setup.reached_target2 = True
        self.recorder.record(
            ctx, asset, setup, outcome.value, profit, exit_price=exit_price
        )
        ctx.active[asset] = None
