"""
models/store.py
---------------
Shape of the full state blob exchanged with the shared store, and the
payload accepted by the manual close endpoint.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.position import PositionSetup, now_ms
from models.trade_outcome import Outcome, PerformanceAggregate, TradeRecord

DEFAULT_ASSETS = ("btc", "eth")


def default_active_trades() -> Dict[str, Optional[PositionSetup]]:
    return {asset: None for asset in DEFAULT_ASSETS}


class StoreBlob(BaseModel):
    """Everything the store persists, as one snapshot."""

    model_config = ConfigDict(populate_by_name=True)

    trades: List[TradeRecord] = Field(default_factory=list)
    active_trades: Dict[str, Optional[PositionSetup]] = Field(
        default_factory=default_active_trades, alias="activeTrades"
    )
    performance: PerformanceAggregate = Field(default_factory=PerformanceAggregate)
    version: Optional[int] = None
    timestamp: int = Field(default_factory=now_ms)

    @field_validator("trades", mode="before")
    @classmethod
    def none_trades(cls, v):
        return v if v is not None else []

    @field_validator("active_trades", mode="before")
    @classmethod
    def none_active(cls, v):
        return v if v is not None else default_active_trades()

    @field_validator("performance", mode="before")
    @classmethod
    def none_performance(cls, v):
        return v if v is not None else {}

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


class ManualCloseRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    asset: str = Field(..., min_length=1)
    outcome: Outcome
    profit: float = 0.0
    exit_price: float = Field(..., gt=0, alias="exitPrice")

    @field_validator("asset")
    @classmethod
    def lower_asset(cls, v: str) -> str:
        return v.lower()
