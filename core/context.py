"""
core/context.py
---------------
All per-asset runtime state in one object.  The engine builds a single
TradingContext at start-up and passes it to every component, so the price
aggregator, regime classifier, signal generator, state machine and recorder
never share module-level globals.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterable, List, Optional

from models.market import MarketRegime, PriceSample
from models.position import PositionSetup
from models.store import StoreBlob
from models.trade_outcome import PerformanceAggregate, TradeRecord

WINDOW_SIZE = 50


@dataclass
class TradingContext:
    assets: List[str]
    windows: Dict[str, Deque[PriceSample]] = field(default_factory=dict)
    current_prices: Dict[str, float] = field(default_factory=dict)
    regimes: Dict[str, MarketRegime] = field(default_factory=dict)
    active: Dict[str, Optional[PositionSetup]] = field(default_factory=dict)
    last_signal_at: Dict[str, float] = field(default_factory=dict)
    trades: List[TradeRecord] = field(default_factory=list)
    performance: PerformanceAggregate = field(default_factory=PerformanceAggregate)
    version: Optional[int] = None

    def __post_init__(self) -> None:
        self.assets = [a.lower() for a in self.assets]
        for asset in self.assets:
            self._ensure(asset)

    @classmethod
    def for_assets(cls, assets: Iterable[str]) -> "TradingContext":
        return cls(assets=list(assets))

    def _ensure(self, asset: str) -> None:
        self.windows.setdefault(asset, deque(maxlen=WINDOW_SIZE))
        self.current_prices.setdefault(asset, 0.0)
        self.regimes.setdefault(asset, MarketRegime())
        self.active.setdefault(asset, None)
        self.last_signal_at.setdefault(asset, 0.0)

    def window(self, asset: str) -> Deque[PriceSample]:
        self._ensure(asset)
        return self.windows[asset]

    def active_count(self) -> int:
        return sum(1 for s in self.active.values() if s is not None)

    # ------------------------------------------------------------------ #
    # Snapshot exchange with the store
    # ------------------------------------------------------------------ #
    def to_blob(self) -> StoreBlob:
        return StoreBlob(
            trades=list(self.trades),
            active_trades=dict(self.active),
            performance=self.performance,
            version=self.version,
        )

    def replace_from_blob(self, blob: StoreBlob) -> None:
        """Full-snapshot overwrite of persisted state; price windows stay local."""
        self.trades = list(blob.trades)
        active = {asset: None for asset in self.assets}
        for asset, setup in blob.active_trades.items():
            active[asset.lower()] = setup if setup is not None and setup.is_active else None
        self.active = active
        for asset in list(active):
            self._ensure(asset)
        self.performance = blob.performance
        self.version = blob.version

    def slot_ids(self) -> Dict[str, Optional[str]]:
        return {asset: (s.id if s is not None else None) for asset, s in self.active.items()}

    def rebase_onto(self, blob: StoreBlob, base_slots: Dict[str, Optional[str]]) -> List[TradeRecord]:
        """
        Merge unsaved local changes on top of a newer store snapshot.

        `base_slots` are the slot ids of the last snapshot this context agreed
        with the store on.  Local trades whose position the store has not
        recorded are appended; a slot keeps its local value when the store's
        slot still matches the base, otherwise the store's value wins.  A slot
        whose position already has a record is cleared.  Returns the re-applied
        local trades.  Performance is left to the caller.
        """
        trades = list(blob.trades)
        known_ids = {t.position_id for t in trades if t.position_id}
        known_opens = {(t.asset, t.opened_at) for t in trades}
        reapplied: List[TradeRecord] = []
        for trade in self.trades:
            if trade.position_id in known_ids or (trade.asset, trade.opened_at) in known_opens:
                continue
            trades.append(trade)
            reapplied.append(trade)
            if trade.position_id:
                known_ids.add(trade.position_id)

        remote_active = {
            asset.lower(): setup
            for asset, setup in blob.active_trades.items()
            if setup is not None and setup.is_active
        }
        active: Dict[str, Optional[PositionSetup]] = {}
        for asset in [*self.assets, *self.active, *remote_active]:
            if asset in active:
                continue
            remote = remote_active.get(asset)
            untouched = (remote.id if remote else None) == base_slots.get(asset)
            chosen = self.active.get(asset) if untouched else remote
            if chosen is not None and chosen.id in known_ids:
                chosen = None
            active[asset] = chosen

        self.trades = trades
        self.active = active
        for asset in list(active):
            self._ensure(asset)
        self.version = blob.version
        return reapplied
