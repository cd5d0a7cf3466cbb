from core.context import TradingContext
from models.store import StoreBlob
from modules.outcome_recorder import OutcomeRecorder

# ------------------------- Helpers ------------------------- #


def _record(ctx, setup, outcome="LOSS"):
    return OutcomeRecorder().record(ctx, setup.asset, setup, outcome, 0.5)


# ------------------------- Tests ------------------------- #


def test_rebase_keeps_local_slot_the_store_did_not_touch(ctx, make_setup):
    local = make_setup()
    ctx.active["btc"] = local
    ctx.version = 1
    remote = StoreBlob(active_trades={"btc": None, "eth": None}, version=2)

    reapplied = ctx.rebase_onto(remote, {"btc": None, "eth": None})

    assert reapplied == []
    assert ctx.active["btc"] is local
    assert ctx.version == 2


def test_rebase_takes_store_slot_changed_by_other_writer(ctx, make_setup):
    ours = make_setup()
    theirs = make_setup(entry=105.0)
    ctx.active["btc"] = ours
    remote = StoreBlob(active_trades={"btc": theirs, "eth": None}, version=4)

    ctx.rebase_onto(remote, {"btc": ours.id, "eth": None})

    assert ctx.active["btc"].id == theirs.id


def test_rebase_reapplies_unsaved_records_once(ctx, make_setup):
    shared = make_setup(asset="eth", opened_at=1_700_000_000_001)
    store_copy = _record(ctx, shared.model_copy(), "WIN")
    remote = StoreBlob(trades=[store_copy], active_trades={"btc": None, "eth": None}, version=3)

    closed_locally = make_setup()
    ctx.active["btc"] = closed_locally
    _record(ctx, closed_locally)
    ctx.active["btc"] = None

    reapplied = ctx.rebase_onto(remote, {"btc": closed_locally.id, "eth": None})

    assert [t.position_id for t in reapplied] == [closed_locally.id]
    assert [t.position_id for t in ctx.trades] == [shared.id, closed_locally.id]


def test_rebase_clears_slot_whose_position_is_already_recorded(ctx, make_setup):
    setup = make_setup()
    ctx.active["btc"] = setup
    other = make_setup(asset="eth")
    recorded = OutcomeRecorder().record(
        TradingContext.for_assets(["btc"]), "btc", setup.model_copy(), "WIN", 1.25, closed_by="MANUAL"
    )
    # the store recorded the position but still lists it in its slot
    remote = StoreBlob(trades=[recorded], active_trades={"btc": setup, "eth": other}, version=5)

    ctx.rebase_onto(remote, {"btc": setup.id, "eth": None})

    assert ctx.active["btc"] is None
    assert ctx.active["eth"].id == other.id
    assert len(ctx.trades) == 1
