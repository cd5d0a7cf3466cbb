# --------------------------------------------------------------------
# models/trade_outcome.py
# One immutable record representing the *final* life-cycle step of a paper
# position, plus the performance aggregate derived from the list of them.
# --------------------------------------------------------------------
from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.position import PositionSetup, now_ms

Outcome = Literal["WIN", "LOSS", "BREAKEVEN"]
ClosedBy = Literal["ENGINE", "MANUAL"]

TERMINAL_OUTCOMES = frozenset({"WIN", "LOSS", "BREAKEVEN"})


class TradeRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    asset: str
    position_id: Optional[str] = Field(default=None, alias="positionId")
    setup: PositionSetup
    outcome: Outcome
    profit: float = 0.0  # price distance reported by whoever closed the position
    realized_pnl: float = Field(default=0.0, alias="realizedPnL")
    exit_price: Optional[float] = Field(default=None, alias="exitPrice")
    opened_at: int = Field(..., alias="timestamp")
    closed_at: int = Field(default_factory=now_ms, alias="closedAt")
    closed_by: ClosedBy = Field(default="ENGINE", alias="closedBy")
    market_condition: str = Field(default="", alias="marketCondition")
    volatility_level: str = Field(default="", alias="volatilityLevel")
    session_active: str = Field(default="", alias="sessionActive")

    @property
    def entry_price(self) -> float:
        return self.setup.entry_price


class PerformanceAggregate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_trades: int = Field(default=0, alias="totalTrades")
    winners: int = 0
    losers: int = 0
    breakeven_trades: int = Field(default=0, alias="breakevenTrades")
    win_rate: float = Field(default=0.0, alias="winRate")
    profit_factor: float = Field(default=0.0, alias="profitFactor")
    avg_win: float = Field(default=0.0, alias="avgWin")
    avg_loss: float = Field(default=0.0, alias="avgLoss")
    breakeven_rate: float = Field(default=0.0, alias="breakevenRate")
    total_profit: float = Field(default=0.0, alias="totalProfit")
