"""
strategy/base.py
----------------
Common interface for all strategy implementations.

A Strategy receives an asset's rolling price window plus the current regime
and decides whether there is a directional idea worth scoring.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Dict, Optional, Sequence

from models.market import MarketRegime, PriceSample


class BaseStrategy(ABC):
    """Abstract base strategy with a single entry point."""

    @abstractmethod
    def generate_signal(
        self,
        window: Sequence[PriceSample],
        asset: str,
        regime: MarketRegime,
    ) -> Optional[Dict]:
        """
        Evaluate the window and return a signal dict or None.

        Expected keys when a signal is returned
        ---------------------------------------
        asset       : str   – asset key (e.g. 'btc')
        direction   : str   – 'BULLISH' or 'BEARISH'
        momentum    : float – signed strength the direction was taken from
        price       : float – latest price in the window
        """
        raise NotImplementedError
