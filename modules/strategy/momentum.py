"""
strategy/momentum.py
--------------------
Short-horizon momentum:

• BULLISH – mean of the last three % changes > 0
• BEARISH – otherwise

With fewer than three samples there is no signal at all; the caller simply
waits for more data.
"""

from __future__ import annotations
from itertools import islice
from typing import Dict, Optional, Sequence

from models.market import MarketRegime, PriceSample

from .base import BaseStrategy

MOMENTUM_SAMPLES = 3
MOMENTUM_CLAMP = 2.0


def calculate_momentum(window: Sequence[PriceSample]) -> Optional[float]:
    """Average of the last 3 pct changes clamped to [-2, 2], None if too short."""
    if len(window) < MOMENTUM_SAMPLES:
        return None
    recent = list(islice(window, len(window) - MOMENTUM_SAMPLES, None))
    avg = sum(s.pct_change for s in recent) / MOMENTUM_SAMPLES
    return max(-MOMENTUM_CLAMP, min(MOMENTUM_CLAMP, avg))


class MomentumStrategy(BaseStrategy):

    def generate_signal(
        self,
        window: Sequence[PriceSample],
        asset: str,
        regime: MarketRegime,
    ) -> Optional[Dict]:
        momentum = calculate_momentum(window)
        if momentum is None:
            return None
        return {
            "asset": asset,
            "direction": "BULLISH" if momentum > 0 else "BEARISH",
            "momentum": momentum,
            "price": window[-1].price,
        }
