"""
models/market.py
----------------
Price samples, inbound tick events and the derived market regime.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from typing import Literal

from pydantic import BaseModel, Field, field_validator

TrendCondition = Literal["TRENDING_UP", "TRENDING_DOWN", "RANGING"]
VolatilityLevel = Literal["LOW", "NORMAL", "HIGH", "EXTREME"]


class TickEvent(BaseModel):
    """A single price update pushed by the feed."""

    asset: str = Field(..., min_length=1)
    price: float = Field(..., gt=0)
    pct_change: float = 0.0
    timestamp: float = Field(default_factory=time.time)

    @field_validator("asset")
    @classmethod
    def lower_asset(cls, v: str) -> str:
        return v.lower()

    @field_validator("price", "pct_change")
    @classmethod
    def finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("value must be finite")
        return v


@dataclass
class PriceSample:
    asset: str
    price: float
    pct_change: float = 0.0
    received_at: float = field(default_factory=time.time)


@dataclass
class MarketRegime:
    condition: TrendCondition = "RANGING"
    volatility: VolatilityLevel = "NORMAL"
