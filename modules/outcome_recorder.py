"""
outcome_recorder.py
-------------------
Turns a closed paper position into a TradeRecord, exactly once, and rebuilds
the performance aggregate from the full trade list.

Duplicate protection runs three independent checks and every one must pass:

1. the outcome is terminal (WIN / LOSS / BREAKEVEN);
2. the setup has not been flagged ``recorded`` already;
3. the trade list holds no record for the same position id, the same
   (asset, opened-at) pair, or the same asset with an entry within 0.5 and
   the same outcome.

A failed check is logged and the call becomes a no-op.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, List, Optional

from core.context import TradingContext
from models.position import PositionSetup, now_ms
from models.trade_outcome import (
    TERMINAL_OUTCOMES,
    PerformanceAggregate,
    TradeRecord,
)

DEFAULT_RISK_PER_TRADE = 10.0
DUPLICATE_ENTRY_TOLERANCE = 0.5
WIN_FALLBACK_MULTIPLE = 3
# JSON has no Infinity; stands in for "no losses yet"
PROFIT_FACTOR_INFINITE = 999.0


def realized_pnl(
    setup: PositionSetup, outcome: str, risk_per_trade: float = DEFAULT_RISK_PER_TRADE
) -> float:
    """Monetary result of a closed position under a fixed risk per trade."""
    pnl = 0.0
    if outcome == "WIN":
        entry = setup.entry_price
        stop_pct = abs(setup.risk_stop - entry) / entry
        target_pct = abs(setup.target2 - entry) / entry
        if stop_pct > 0 and target_pct > 0:
            position_value = risk_per_trade / stop_pct
            pnl = position_value * target_pct
        else:
            pnl = risk_per_trade * WIN_FALLBACK_MULTIPLE
    elif outcome == "LOSS":
        pnl = -risk_per_trade
    if not math.isfinite(pnl):
        return 0.0
    return pnl


def compute_performance(trades: Iterable[TradeRecord]) -> PerformanceAggregate:
    """Full replay of the trade list; never updated incrementally."""
    trades = list(trades)
    total = len(trades)
    wins = [abs(t.realized_pnl) for t in trades if t.outcome == "WIN"]
    losses = [abs(t.realized_pnl) for t in trades if t.outcome == "LOSS"]
    breakeven = sum(1 for t in trades if t.outcome == "BREAKEVEN")

    total_win = sum(wins)
    total_loss = sum(losses)
    if total_loss > 0:
        profit_factor = total_win / total_loss
    elif total_win > 0:
        profit_factor = PROFIT_FACTOR_INFINITE
    else:
        profit_factor = 0.0

    return PerformanceAggregate(
        total_trades=total,
        winners=len(wins),
        losers=len(losses),
        breakeven_trades=breakeven,
        win_rate=len(wins) / total * 100 if total else 0.0,
        profit_factor=profit_factor,
        avg_win=total_win / len(wins) if wins else 0.0,
        avg_loss=total_loss / len(losses) if losses else 0.0,
        breakeven_rate=breakeven / total * 100 if total else 0.0,
        total_profit=sum(t.realized_pnl for t in trades),
    )


def find_duplicate(
    trades: List[TradeRecord], asset: str, setup: PositionSetup, outcome: str
) -> Optional[TradeRecord]:
    for t in trades:
        if t.asset != asset:
            continue
        if t.position_id is not None and t.position_id == setup.id:
            return t
        if t.opened_at == setup.opened_at:
            return t
        if (
            abs(t.entry_price - setup.entry_price) < DUPLICATE_ENTRY_TOLERANCE
            and t.outcome == outcome
        ):
            return t
    return None


class OutcomeRecorder:
    """Only writer of ``setup.recorded`` and of the trade list."""

    def __init__(
        self,
        risk_per_trade: float = DEFAULT_RISK_PER_TRADE,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.risk_per_trade = risk_per_trade
        self.logger = logger or logging.getLogger(__name__)

    def record(
        self,
        ctx: TradingContext,
        asset: str,
        setup: PositionSetup,
        outcome: Optional[str],
        profit: float = 0.0,
        *,
        exit_price: Optional[float] = None,
        closed_by: str = "ENGINE",
    ) -> Optional[TradeRecord]:
        """Append a TradeRecord and refresh ctx.performance; None when skipped."""
        asset = asset.lower()
        if outcome not in TERMINAL_OUTCOMES:
            self.logger.info("[%s] Not recording - trade is still %s", asset, outcome or "ACTIVE")
            return None
        if setup.recorded:
            self.logger.info("[%s] Already recorded - skipping duplicate", asset)
            return None
        if find_duplicate(ctx.trades, asset, setup, outcome) is not None:
            self.logger.info("[%s] Duplicate %s trade detected - skipping", asset, outcome)
            return None

        pnl = realized_pnl(setup, outcome, self.risk_per_trade)
        closed = setup.model_copy(update={"status": "CLOSED", "recorded": True})
        trade = TradeRecord(
            asset=asset,
            position_id=setup.id,
            setup=closed,
            outcome=outcome,
            profit=profit if profit is not None and math.isfinite(profit) else 0.0,
            realized_pnl=pnl,
            exit_price=exit_price,
            opened_at=setup.opened_at,
            closed_at=now_ms(),
            closed_by=closed_by,
            market_condition=setup.market_condition,
            volatility_level=setup.volatility_level,
            session_active=setup.session_active,
        )

        # flag and append with no await in between
        setup.recorded = True
        setup.status = "CLOSED"
        ctx.trades.append(trade)
        ctx.performance = compute_performance(ctx.trades)

        self.logger.info(
            "✅ RECORDING %s %s | entry %.2f pnl %.2f (total %d)",
            asset.upper(), outcome, setup.entry_price, pnl, len(ctx.trades),
        )
        return trade
