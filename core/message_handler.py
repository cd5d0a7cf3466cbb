"""
message_handler.py
==================
Validation of inbound websocket *ticker* messages from the combined stream.

A valid message looks like::

    {"stream": "btcusdt@ticker", "data": {"s": "BTCUSDT", "c": "65000.1", "P": "1.25"}}

Anything else is logged and dropped; nothing downstream ever sees a
half-parsed tick.
"""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError

from models.market import TickEvent
from utils.logger import setup_logger

logger = setup_logger(__name__)

_REQUIRED_DATA_KEYS = ("s", "c")


def _validate_schema(payload: Dict[str, Any]) -> bool:
    data = payload.get("data")
    if not isinstance(data, dict):
        logger.debug("⏭️ Payload without 'data' dict skipped: %s", payload)
        return False
    for key in _REQUIRED_DATA_KEYS:
        if key not in data:
            logger.warning("❌ Missing ticker key '%s' in payload: %s", key, payload)
            return False
    return True


def parse_ticker(
    payload: Dict[str, Any], symbol_map: Mapping[str, str]
) -> Optional[TickEvent]:
    """
    Turn a combined-stream ticker payload into a TickEvent.

    `symbol_map` maps exchange symbols (``BTCUSDT``) to asset keys (``btc``).
    Returns None for unknown symbols, malformed payloads or non-positive
    prices.
    """
    if not isinstance(payload, dict) or not _validate_schema(payload):
        return None

    data = payload["data"]
    asset = symbol_map.get(str(data["s"]).upper())
    if asset is None:
        logger.debug("⏭️ Ticker for untracked symbol %s skipped", data["s"])
        return None

    try:
        fields = {
            "asset": asset,
            "price": float(data["c"]),
            "pct_change": float(data.get("P") or 0.0),
        }
        if data.get("E"):
            fields["timestamp"] = float(data["E"]) / 1000
        return TickEvent(**fields)
    except (TypeError, ValueError, ValidationError) as exc:
        logger.warning("❌ Invalid ticker for %s dropped: %s", asset, exc)
        return None
