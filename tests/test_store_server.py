from contextlib import asynccontextmanager

import pytest
from aiohttp.test_utils import TestClient, TestServer

from core.context import TradingContext
from models.store import StoreBlob
from modules.outcome_recorder import OutcomeRecorder
from modules.persistence.sqlite import SQLiteStateStore
from modules.store_server import StoreServer

# ------------------------- Helpers ------------------------- #


@pytest.fixture
def server():
    store = SQLiteStateStore(":memory:")
    yield StoreServer(store)
    store.close()


@asynccontextmanager
async def serve(server):
    client = TestClient(TestServer(server.create_app()))
    await client.start_server()
    try:
        yield client
    finally:
        await client.close()


def _blob_with_active(make_setup, **kw):
    return StoreBlob(active_trades={"btc": make_setup(), "eth": None}, **kw).to_wire()


# ------------------------- Tests ------------------------- #


@pytest.mark.asyncio
async def test_empty_store_returns_defaults(server):
    async with serve(server) as client:
        resp = await client.get("/api/data")
        assert resp.status == 200
        data = await resp.json()

    assert data["trades"] == []
    assert data["activeTrades"] == {"btc": None, "eth": None}
    assert data["performance"]["totalTrades"] == 0
    assert data["version"] == 0


@pytest.mark.asyncio
async def test_write_then_read(server, make_setup):
    async with serve(server) as client:
        resp = await client.post("/api/data", json=_blob_with_active(make_setup, version=0))
        body = await resp.json()
        assert resp.status == 200
        assert body["success"] is True
        assert body["version"] == 1

        data = await (await client.get("/api/data")).json()

    assert data["version"] == 1
    assert data["activeTrades"]["btc"]["entryPrice"] == 100.0
    assert data["activeTrades"]["btc"]["t2"] == pytest.approx(101.25)


@pytest.mark.asyncio
async def test_stale_version_is_rejected(server, make_setup):
    async with serve(server) as client:
        await client.put("/api/data", json=_blob_with_active(make_setup, version=0))

        resp = await client.put("/api/data", json=StoreBlob(version=0).to_wire())
        body = await resp.json()
        assert resp.status == 409
        assert body["success"] is False
        assert body["version"] == 1

        # the rejected write left the store untouched
        data = await (await client.get("/api/data")).json()
        assert data["activeTrades"]["btc"] is not None

        resp = await client.put("/api/data", json=StoreBlob(version=1).to_wire())
        assert resp.status == 200
        assert (await resp.json())["version"] == 2


@pytest.mark.asyncio
async def test_write_without_version_is_accepted(server):
    payload = StoreBlob().to_wire()
    payload.pop("version")
    async with serve(server) as client:
        resp = await client.post("/api/data", json=payload)
        assert resp.status == 200


@pytest.mark.asyncio
async def test_write_without_version_cannot_overwrite_history(server, make_setup):
    async with serve(server) as client:
        await client.post("/api/data", json=_blob_with_active(make_setup, version=0))

        payload = StoreBlob().to_wire()
        payload.pop("version")
        resp = await client.post("/api/data", json=payload)
        body = await resp.json()
        assert resp.status == 409
        assert body["version"] == 1

        data = await (await client.get("/api/data")).json()
        assert data["version"] == 1
        assert data["activeTrades"]["btc"] is not None


@pytest.mark.asyncio
async def test_malformed_writes_are_rejected(server):
    async with serve(server) as client:
        resp = await client.post("/api/data", data="not json", headers={"Content-Type": "application/json"})
        assert resp.status == 400

        resp = await client.post("/api/data", json=[1, 2, 3])
        assert resp.status == 400

        resp = await client.post("/api/data", json={"trades": "nope"})
        assert resp.status == 400
        assert (await resp.json())["success"] is False


@pytest.mark.asyncio
async def test_health_and_stats(server, make_setup):
    async with serve(server) as client:
        await client.post("/api/data", json=_blob_with_active(make_setup))

        health = await (await client.get("/api/health")).json()
        stats = await (await client.get("/api/stats")).json()

    assert health["status"] == "online"
    assert health["activeTradeCount"] == 1
    assert health["totalTrades"] == 0
    assert health["uptime"] >= 0
    assert stats["recentTrades"] == []
    assert stats["activeTrades"]["btc"]["asset"] == "btc"


@pytest.mark.asyncio
async def test_manual_close_records_trade(server, make_setup):
    async with serve(server) as client:
        await client.post("/api/data", json=_blob_with_active(make_setup, version=0))

        resp = await client.post(
            "/api/trades/close",
            json={"asset": "BTC", "outcome": "WIN", "profit": 1.25, "exitPrice": 101.3},
        )
        body = await resp.json()
        assert resp.status == 200
        assert body["recorded"] is True
        assert body["version"] == 2

        data = await (await client.get("/api/data")).json()
        assert data["activeTrades"]["btc"] is None
        assert len(data["trades"]) == 1
        trade = data["trades"][0]
        assert trade["closedBy"] == "MANUAL"
        assert trade["realizedPnL"] == pytest.approx(25.0)
        assert trade["exitPrice"] == 101.3
        assert data["performance"]["winners"] == 1

        resp = await client.post(
            "/api/trades/close", json={"asset": "btc", "outcome": "WIN", "exitPrice": 101.3}
        )
        assert resp.status == 404


@pytest.mark.asyncio
async def test_manual_close_of_already_recorded_position_keeps_slot(server, make_setup):
    setup = make_setup()
    ctx = TradingContext.for_assets(["btc", "eth"])
    recorded = OutcomeRecorder().record(ctx, "btc", setup.model_copy(), "LOSS", 0.6)
    blob = StoreBlob(trades=[recorded], active_trades={"btc": setup, "eth": None}, version=0)

    async with serve(server) as client:
        await client.post("/api/data", json=blob.to_wire())

        resp = await client.post(
            "/api/trades/close", json={"asset": "btc", "outcome": "LOSS", "exitPrice": 99.4}
        )
        body = await resp.json()
        assert resp.status == 409
        assert body["success"] is False

        data = await (await client.get("/api/data")).json()

    assert data["version"] == 1
    assert data["activeTrades"]["btc"]["id"] == setup.id
    assert len(data["trades"]) == 1


@pytest.mark.asyncio
async def test_manual_close_validation(server):
    async with serve(server) as client:
        resp = await client.post("/api/trades/close", json={"asset": "btc", "outcome": "WIN"})
        assert resp.status == 400

        resp = await client.post(
            "/api/trades/close", json={"asset": "btc", "outcome": "MAYBE", "exitPrice": 1}
        )
        assert resp.status == 400


@pytest.mark.asyncio
async def test_csv_export(server, make_setup):
    async with serve(server) as client:
        await client.post("/api/data", json=_blob_with_active(make_setup))
        await client.post(
            "/api/trades/close", json={"asset": "btc", "outcome": "LOSS", "exitPrice": 99.4}
        )

        resp = await client.get("/api/trades.csv")
        text = await resp.text()

    assert resp.status == 200
    assert resp.content_type == "text/csv"
    assert "attachment" in resp.headers["Content-Disposition"]
    lines = text.strip().split("\n")
    assert lines[0].startswith("timestamp,asset,direction,entry_min,entry_max,stop")
    assert len(lines) == 2
    assert ",LOSS,-10.0," in lines[1]
