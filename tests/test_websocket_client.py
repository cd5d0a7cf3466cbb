import json
from unittest.mock import MagicMock, patch

import pytest

from modules.websocket_client import PriceFeedClient

# ------------------------- Fixtures ------------------------- #


@pytest.fixture
def on_tick():
    return MagicMock()


@pytest.fixture
def client(on_tick):
    return PriceFeedClient(
        {"BTCUSDT": "btc"},
        on_tick,
        "wss://example.invalid/stream",
        max_retries=3,
        initial_backoff=0,
        max_backoff=0,
    )


# ------------------------- Tests ------------------------- #


def test_handle_raw_forwards_valid_ticks(client, on_tick):
    raw = json.dumps({"data": {"s": "BTCUSDT", "c": "64000", "P": "0.5"}})

    tick = client.handle_raw(raw)

    assert tick.asset == "btc"
    on_tick.assert_called_once_with(tick)


def test_handle_raw_drops_garbage(client, on_tick):
    assert client.handle_raw("{not json") is None
    assert client.handle_raw(json.dumps({"data": {"s": "BTCUSDT", "c": "-1"}})) is None
    on_tick.assert_not_called()


@pytest.mark.asyncio
async def test_gives_up_after_max_retries(client):
    with patch("modules.websocket_client.websockets.connect", side_effect=OSError("refused")) as connect:
        await client.run()

    assert connect.call_count == 3
    assert client.gave_up is True
    assert client.connected is False


@pytest.mark.asyncio
async def test_stop_ends_run_without_giving_up(client):
    def _refuse(*args, **kwargs):
        client.stop()
        raise OSError("refused")

    with patch("modules.websocket_client.websockets.connect", side_effect=_refuse) as connect:
        await client.run()

    assert connect.call_count == 1
    assert client.gave_up is False


@pytest.mark.asyncio
async def test_queue_consumer_processes_until_sentinel(client, on_tick):
    await client.queue.put(json.dumps({"data": {"s": "BTCUSDT", "c": "64000"}}))
    await client.queue.put("garbage")
    await client.queue.put(None)

    await client.process_message_queue()

    assert on_tick.call_count == 1
