import pytest

from core.context import TradingContext
from models.market import PriceSample
from models.position import EntryBand, PositionSetup

# ------------------------- Fixtures ------------------------- #


@pytest.fixture
def ctx():
    return TradingContext.for_assets(["btc", "eth"])


@pytest.fixture
def make_setup():
    """Conservative BULLISH/BEARISH setup around `entry` (defaults: BTC @ 100)."""

    def _make(entry=100.0, direction="BULLISH", asset="btc", **overrides):
        sign = 1 if direction == "BULLISH" else -1
        fields = dict(
            asset=asset,
            direction=direction,
            entry_price=entry,
            entry=EntryBand(min=entry * 0.9995, max=entry * 1.0005),
            stop=entry * (1 - sign * 0.005),
            target1=entry * (1 + sign * 0.0075),
            target2=entry * (1 + sign * 0.0125),
            confidence=10,
            opened_at=1_700_000_000_000,
            market_condition="RANGING",
            volatility_level="NORMAL",
            session_active="LONDON",
        )
        fields.update(overrides)
        return PositionSetup(**fields)

    return _make


@pytest.fixture
def fill_window():
    def _fill(ctx, asset, prices, pct_change=0.5):
        for price in prices:
            ctx.window(asset).append(PriceSample(asset=asset, price=price, pct_change=pct_change))
        ctx.current_prices[asset] = prices[-1]

    return _fill
