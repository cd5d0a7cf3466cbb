from typing import Any, Dict, List

from modules.websocket_client import DEFAULT_FEED_URL


class ConfigManager:
    def __init__(self, config: Dict[str, Any]):
        self.config = config

    def get(self, key: str, default: Any = None) -> Any:
        return self.config.get(key, default)

    def get_assets(self) -> List[str]:
        return self.config.get("ASSETS") or ["btc", "eth"]

    def get_symbol_map(self) -> Dict[str, str]:
        """Exchange symbol -> asset key, e.g. {"BTCUSDT": "btc"}."""
        return self.config.get("SYMBOL_MAP") or {
            f"{asset.upper()}USDT": asset for asset in self.get_assets()
        }

    def get_risk_mode(self) -> str:
        return str(self.config.get("RISK_MODE", "conservative")).lower()

    def get_risk_per_trade(self) -> float:
        return float(self.config.get("RISK_PER_TRADE", 10.0))

    def get_scan_interval(self) -> float:
        return float(self.config.get("SCAN_INTERVAL", 3.0))

    def get_signal_cooldown(self) -> float:
        return float(self.config.get("SIGNAL_COOLDOWN", 60.0))

    def get_store_url(self) -> str:
        return self.config.get("STORE_URL") or "http://localhost:3001"

    def get_store_timeout(self) -> float:
        return float(self.config.get("STORE_TIMEOUT", 5.0))

    def get_feed_url(self) -> str:
        return self.config.get("FEED_URL") or DEFAULT_FEED_URL

    def get_max_retries(self) -> int:
        return int(self.config.get("FEED_MAX_RETRIES", 10))

    def get_monitor_interval(self) -> float:
        return float(self.config.get("MONITOR_INTERVAL", 5.0))

    def get_store_host(self) -> str:
        return self.config.get("STORE_HOST") or "0.0.0.0"

    def get_store_port(self) -> int:
        return int(self.config.get("STORE_PORT", 3001))

    def get_db_path(self) -> str:
        return self.config.get("DB_PATH") or "data/trades.db"
