from __future__ import annotations
from dataclasses import dataclass
from typing import Dict

from utils.logger import setup_logger

logger = setup_logger(__name__)

ENTRY_BAND_PCT = 0.0005


@dataclass(frozen=True)
class RiskPreset:
    name: str
    stop_pct: float
    target1_mult: float
    target2_mult: float
    min_confidence: float


RISK_PRESETS: Dict[str, RiskPreset] = {
    "conservative": RiskPreset("conservative", 0.005, 1.5, 2.5, 8),
    "aggressive": RiskPreset("aggressive", 0.003, 1.0, 2.0, 6),
}


def get_preset(mode: str) -> RiskPreset:
    try:
        return RISK_PRESETS[mode.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown risk mode {mode!r}; expected one of {sorted(RISK_PRESETS)}"
        ) from None


class TradePlanner:
    """Turns an entry price and direction into entry band, stop and targets."""

    def __init__(self, preset: RiskPreset = RISK_PRESETS["conservative"]):
        self.preset = preset

    def plan_levels(self, entry_price: float, direction: str) -> Dict[str, float]:
        """
        Return entry band plus stop / target levels for `direction`.
        The band is symmetric; BEARISH mirrors stop and targets around entry.
        """
        p = self.preset
        sign = 1 if direction == "BULLISH" else -1
        plan = {
            "entry_min": entry_price * (1 - ENTRY_BAND_PCT),
            "entry_max": entry_price * (1 + ENTRY_BAND_PCT),
            "stop": entry_price * (1 - sign * p.stop_pct),
            "target1": entry_price * (1 + sign * p.stop_pct * p.target1_mult),
            "target2": entry_price * (1 + sign * p.stop_pct * p.target2_mult),
        }
        logger.debug("plan_levels(%s, %s) -> %s", entry_price, direction, plan)
        return plan
