"""
reporting.py
------------
Read-side views over the state blob: CSV export of closed trades, the health
summary and the stats payload served by the store.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pandas as pd

from models.store import StoreBlob
from models.trade_outcome import TradeRecord
from modules.outcome_recorder import compute_performance

CSV_COLUMNS: List[str] = [
    "timestamp",
    "asset",
    "direction",
    "entry_min",
    "entry_max",
    "stop",
    "target1",
    "target2",
    "entryPrice",
    "outcome",
    "profit",
    "marketCondition",
    "volatilityLevel",
    "sessionActive",
]


def format_timestamp(ms: Optional[int]) -> str:
    if not ms:
        return ""
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _csv_row(trade: TradeRecord) -> Dict[str, object]:
    s = trade.setup
    return {
        "timestamp": format_timestamp(s.opened_at or trade.opened_at),
        "asset": trade.asset,
        "direction": s.direction,
        "entry_min": s.entry.min,
        "entry_max": s.entry.max,
        "stop": s.stop,
        "target1": s.target1,
        "target2": s.target2,
        "entryPrice": s.entry_price,
        "outcome": trade.outcome,
        "profit": trade.realized_pnl,
        "marketCondition": trade.market_condition or s.market_condition,
        "volatilityLevel": trade.volatility_level or s.volatility_level,
        "sessionActive": trade.session_active or s.session_active,
    }


def trades_to_csv(trades: List[TradeRecord]) -> str:
    """Fixed column order, minimal RFC 4180 quoting, '\\n' line endings."""
    df = pd.DataFrame([_csv_row(t) for t in trades], columns=CSV_COLUMNS)
    return df.to_csv(index=False, lineterminator="\n", na_rep="")


def build_health(blob: StoreBlob, started_at: float) -> Dict[str, object]:
    return {
        "status": "online",
        "activeTradeCount": sum(1 for s in blob.active_trades.values() if s is not None),
        "totalTrades": len(blob.trades),
        "uptime": round(time.time() - started_at, 3),
    }


def build_stats(blob: StoreBlob, recent: int = 10) -> Dict[str, object]:
    return {
        "performance": compute_performance(blob.trades).model_dump(by_alias=True),
        "recentTrades": [t.model_dump(by_alias=True) for t in blob.trades[-recent:]],
        "activeTrades": {
            asset: (s.model_dump(by_alias=True) if s is not None else None)
            for asset, s in blob.active_trades.items()
        },
        "timestamp": int(time.time() * 1000),
    }
