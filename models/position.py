"""
models/position.py
------------------
Pydantic models for a paper position while it is open.

The JSON form stored in the shared blob uses the camelCase aliases
(``entryPrice``, ``reachedTarget1``, ``t1`` ...) so the store, the CSV export
and any dashboard reading the blob agree on one wire format.
"""

from __future__ import annotations

import time
import uuid
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

Direction = Literal["BULLISH", "BEARISH"]
PositionStatus = Literal["ACTIVE", "CLOSED"]


def now_ms() -> int:
    return int(time.time() * 1000)


def new_position_id() -> str:
    return uuid.uuid4().hex


class EntryBand(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    min: float = Field(..., gt=0)
    max: float = Field(..., gt=0)

    @property
    def midpoint(self) -> float:
        return (self.min + self.max) / 2


class PositionSetup(BaseModel):
    """One paper position.  Only the state machine mutates the stop fields."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_position_id)
    asset: str = Field(..., min_length=1)
    direction: Direction
    entry_price: float = Field(..., gt=0, alias="entryPrice")
    entry: EntryBand
    stop: float = Field(..., gt=0)
    original_stop: Optional[float] = Field(default=None, alias="originalStop")
    target1: float = Field(..., gt=0, alias="t1")
    target2: float = Field(..., gt=0, alias="t2")
    reached_target1: bool = Field(default=False, alias="reachedTarget1")
    reached_target2: bool = Field(default=False, alias="reachedTarget2")
    confidence: float = 0
    opened_at: int = Field(default_factory=now_ms, alias="timestamp")
    market_condition: str = Field(default="RANGING", alias="marketCondition")
    volatility_level: str = Field(default="NORMAL", alias="volatilityLevel")
    session_active: str = Field(default="", alias="sessionActive")
    recorded: bool = False
    status: PositionStatus = "ACTIVE"

    @field_validator("asset")
    @classmethod
    def lower_asset(cls, v: str) -> str:
        return v.lower()

    @property
    def entry_midpoint(self) -> float:
        return self.entry.midpoint

    @property
    def is_active(self) -> bool:
        return self.status == "ACTIVE"

    @property
    def risk_stop(self) -> float:
        """Stop level that defined the initial risk (before any breakeven move)."""
        return self.original_stop if self.original_stop is not None else self.stop

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)
