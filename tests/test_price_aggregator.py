import math

from core.context import WINDOW_SIZE
from models.market import TickEvent
from modules.price_aggregator import PriceAggregator


def test_ingest_updates_price_and_window(ctx):
    aggregator = PriceAggregator(clock=lambda: 42.0)

    accepted = aggregator.ingest(ctx, TickEvent(asset="BTC", price=65000.5, pct_change=1.2))

    assert accepted is True
    assert ctx.current_prices["btc"] == 65000.5
    sample = ctx.window("btc")[-1]
    assert sample.price == 65000.5
    assert sample.pct_change == 1.2
    assert sample.received_at == 42.0


def test_window_is_bounded_fifo(ctx):
    aggregator = PriceAggregator()
    for i in range(WINDOW_SIZE + 10):
        aggregator.add_price(ctx, "eth", 100.0 + i)

    window = ctx.window("eth")
    assert len(window) == WINDOW_SIZE
    assert window[0].price == 110.0
    assert window[-1].price == 100.0 + WINDOW_SIZE + 9


def test_invalid_prices_are_dropped(ctx):
    aggregator = PriceAggregator()
    for bad in (0, -5.0, math.nan, math.inf, None):
        assert aggregator.add_price(ctx, "btc", bad) is False

    assert len(ctx.window("btc")) == 0
    assert ctx.current_prices["btc"] == 0.0


def test_unknown_asset_gets_its_own_window(ctx):
    PriceAggregator().add_price(ctx, "SOL", 150.0)

    assert ctx.current_prices["sol"] == 150.0
    assert len(ctx.window("sol")) == 1
