"""
regime_classifier.py
--------------------
Trend / volatility labels from the last five samples of an asset's window.
"""

from __future__ import annotations

from itertools import islice

from core.context import TradingContext
from models.market import MarketRegime

MIN_SAMPLES = 5
TREND_THRESHOLD = 0.02

# (lower bound exclusive, label), checked top-down
VOLATILITY_BANDS = (
    (2.0, "EXTREME"),
    (1.5, "HIGH"),
    (0.8, "NORMAL"),
)


class RegimeClassifier:

    def classify(self, ctx: TradingContext, asset: str) -> MarketRegime:
        """Update and return ctx.regimes[asset]; unchanged with fewer than 5 samples."""
        window = ctx.window(asset)
        if len(window) < MIN_SAMPLES:
            return ctx.regimes[asset]

        recent = list(islice(window, len(window) - MIN_SAMPLES, None))
        current_price = ctx.current_prices.get(asset) or recent[-1].price
        delta = recent[-1].price - recent[0].price

        if delta > current_price * TREND_THRESHOLD:
            condition = "TRENDING_UP"
        elif delta < -current_price * TREND_THRESHOLD:
            condition = "TRENDING_DOWN"
        else:
            condition = "RANGING"

        avg_change = sum(abs(s.pct_change) for s in recent) / len(recent)
        volatility = "LOW"
        for bound, label in VOLATILITY_BANDS:
            if avg_change > bound:
                volatility = label
                break

        regime = MarketRegime(condition=condition, volatility=volatility)
        ctx.regimes[asset] = regime
        return regime
