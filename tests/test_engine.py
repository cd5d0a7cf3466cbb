import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from models.market import TickEvent
from modules.outcome_recorder import OutcomeRecorder
from modules.position_machine import PositionStateMachine, Transition
from modules.price_aggregator import PriceAggregator
from modules.regime_classifier import RegimeClassifier
from modules.signal_generator import SignalGenerator
from modules.trade_planner import RISK_PRESETS
from core.engine import TradingEngine

# ------------------------- Fixtures ------------------------- #


@pytest.fixture
def synchronizer():
    sync = MagicMock()
    sync.load = AsyncMock(return_value=True)
    sync.save = AsyncMock(return_value=True)
    sync.flush = AsyncMock()
    sync.close = AsyncMock()
    return sync


@pytest.fixture
def engine(ctx, synchronizer):
    rng = MagicMock()
    rng.randrange.return_value = 10
    return TradingEngine(
        ctx,
        aggregator=PriceAggregator(),
        classifier=RegimeClassifier(),
        state_machine=PositionStateMachine(OutcomeRecorder(10.0)),
        signal_generator=SignalGenerator(
            RISK_PRESETS["conservative"], rng=rng, clock=lambda: 1000.0
        ),
        synchronizer=synchronizer,
        scan_interval=0.01,
    )


def _tick(engine, price, pct=0.5):
    engine.on_tick(TickEvent(asset="btc", price=price, pct_change=pct))


# ------------------------- Tests ------------------------- #


@pytest.mark.asyncio
async def test_open_arm_and_win(engine, ctx, synchronizer):
    for _ in range(3):
        _tick(engine, 100.0)

    await engine.scan_once()
    setup = ctx.active["btc"]
    assert setup is not None
    assert setup.direction == "BULLISH"
    assert synchronizer.request_save.call_count == 1

    _tick(engine, 100.8)
    await engine.scan_once()
    assert setup.reached_target1 is True
    assert synchronizer.request_save.call_count == 2

    _tick(engine, 101.3)
    await engine.scan_once()
    assert ctx.active["btc"] is None
    assert len(ctx.trades) == 1
    assert ctx.trades[0].outcome == "WIN"
    assert ctx.trades[0].profit == pytest.approx(1.25)
    assert ctx.trades[0].realized_pnl == pytest.approx(25.0)
    assert synchronizer.request_save.call_count == 3

    # cooldown keeps the freed slot empty
    await engine.scan_once()
    assert ctx.active["btc"] is None
    assert synchronizer.request_save.call_count == 3


@pytest.mark.asyncio
async def test_assets_without_price_are_skipped(engine, ctx, synchronizer):
    engine.classifier = MagicMock()

    await engine.scan_once()

    engine.classifier.classify.assert_not_called()
    synchronizer.request_save.assert_not_called()


def test_exit_resolution_precedes_admission(engine, ctx):
    manager = MagicMock()
    engine.classifier = manager.classifier
    engine.state_machine = manager.state_machine
    engine.signal_generator = manager.signal_generator
    manager.state_machine.evaluate.return_value = Transition.CLOSED
    manager.signal_generator.evaluate.return_value = None
    ctx.current_prices["btc"] = 100.0

    assert engine.scan_asset("btc") is True

    names = [c[0] for c in manager.mock_calls]
    assert names == [
        "classifier.classify",
        "state_machine.evaluate",
        "signal_generator.evaluate",
    ]


def test_occupied_slot_skips_admission(engine, ctx, make_setup):
    engine.signal_generator = MagicMock()
    ctx.active["btc"] = make_setup()
    ctx.current_prices["btc"] = 100.2

    assert engine.scan_asset("btc") is False
    engine.signal_generator.evaluate.assert_not_called()


@pytest.mark.asyncio
async def test_failing_asset_does_not_stop_the_scan(engine, ctx):
    engine.classifier = MagicMock()
    engine.classifier.classify.side_effect = [RuntimeError("boom"), None]
    engine.state_machine = MagicMock()
    engine.state_machine.evaluate.return_value = Transition.NONE
    engine.signal_generator = MagicMock()
    engine.signal_generator.evaluate.return_value = None
    ctx.current_prices.update(btc=100.0, eth=50.0)

    await engine.scan_once()

    engine.state_machine.evaluate.assert_called_once_with(ctx, "eth", 50.0)


@pytest.mark.asyncio
async def test_run_loads_then_shuts_down_with_final_save(engine, synchronizer):
    feed = MagicMock()
    feed.run = AsyncMock()
    feed.graceful_shutdown = AsyncMock()
    engine.feed = feed

    task = asyncio.create_task(engine.run())
    await asyncio.sleep(0.05)
    engine.stop()
    await asyncio.wait_for(task, timeout=1)

    synchronizer.load.assert_awaited_once()
    feed.run.assert_awaited_once()
    feed.graceful_shutdown.assert_awaited_once()
    synchronizer.save.assert_awaited_once()
    synchronizer.close.assert_awaited_once()
    assert engine.scan_count >= 1


@pytest.mark.asyncio
async def test_start_survives_failed_load(engine, synchronizer):
    synchronizer.load.return_value = False

    await engine.start()

    assert engine.ctx.trades == []
