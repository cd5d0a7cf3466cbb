"""
core/initialization.py
----------------------
Loads configuration from .env, parses the tracked assets, and wires the
runtime components for each process role with simple dependency-injection
(DI) overrides.
"""

from __future__ import annotations

import os
import logging
from typing import Dict, List, Optional, Tuple

from dotenv import load_dotenv

from core.context import TradingContext
from core.engine import TradingEngine
from core.monitor import ExitMonitor
from modules.outcome_recorder import OutcomeRecorder
from modules.persistence.sqlite import SQLiteStateStore
from modules.position_machine import PositionStateMachine
from modules.price_aggregator import PriceAggregator
from modules.regime_classifier import RegimeClassifier
from modules.rest_client import PriceFetcher
from modules.signal_generator import SignalGenerator
from modules.store_server import StoreServer
from modules.store_sync import StoreSynchronizer
from modules.trade_planner import TradePlanner, get_preset
from modules.websocket_client import PriceFeedClient
from utils.config_manager import ConfigManager
from utils.config_validator import validate_config
from utils.logger import setup_logger

DEFAULT_ASSETS = "btc:BTCUSDT,eth:ETHUSDT"


def parse_assets(raw: str) -> Tuple[List[str], Dict[str, str]]:
    """
    ``"btc:BTCUSDT,eth"`` -> (["btc", "eth"], {"BTCUSDT": "btc", "ETHUSDT": "eth"}).
    An asset without an explicit symbol trades against USDT.
    """
    assets: List[str] = []
    symbol_map: Dict[str, str] = {}
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        asset, _, symbol = item.partition(":")
        asset = asset.strip().lower()
        symbol = (symbol.strip() or f"{asset}USDT").upper()
        if asset in assets:
            continue
        assets.append(asset)
        symbol_map[symbol] = asset
    return assets, symbol_map


def load_configuration(env_path: str = "config.env") -> Dict:
    """
    Load settings from an .env-style file and return a structured config dict.
    """
    log = logging.getLogger(__name__)
    load_dotenv(dotenv_path=env_path)

    assets, symbol_map = parse_assets(os.getenv("ASSETS", DEFAULT_ASSETS))

    conf: Dict[str, object] = {
        "ASSETS": assets,
        "SYMBOL_MAP": symbol_map,
        "RISK_MODE": os.getenv("RISK_MODE", "conservative").strip().lower(),
        "RISK_PER_TRADE": float(os.getenv("RISK_PER_TRADE", "10") or 10),
        "SCAN_INTERVAL": float(os.getenv("SCAN_INTERVAL", "3") or 3),
        "SIGNAL_COOLDOWN": float(os.getenv("SIGNAL_COOLDOWN", "60") or 60),
        "STORE_URL": os.getenv("STORE_URL", "http://localhost:3001"),
        "STORE_TIMEOUT": float(os.getenv("STORE_TIMEOUT", "5") or 5),
        "FEED_URL": os.getenv("FEED_URL", ""),
        "FEED_MAX_RETRIES": int(os.getenv("FEED_MAX_RETRIES", "10") or 10),
        "MONITOR_INTERVAL": float(os.getenv("MONITOR_INTERVAL", "5") or 5),
        "STORE_HOST": os.getenv("STORE_HOST", "0.0.0.0"),
        "STORE_PORT": int(os.getenv("STORE_PORT", "3001") or 3001),
        "DB_PATH": os.getenv("DB_PATH", "data/trades.db"),
    }

    log.debug("Parsed ASSETS: %s", conf["ASSETS"])
    log.debug("Parsed SYMBOL_MAP: %s", conf["SYMBOL_MAP"])

    return conf


def initialize_components(
    config: Dict,
    role: str = "engine",
    overrides: Optional[Dict[str, object]] = None,
) -> Dict[str, object]:
    """
    Construct and wire together the components for one process role
    (``engine``, ``monitor`` or ``store``).  Supports DI via overrides.

    Keys you can override:
    {"logger", "context", "recorder", "synchronizer", "feed", "fetcher",
     "signal_generator", "state_store"}
    """
    overrides = overrides or {}
    validate_config(config)
    config = ConfigManager(config)

    logger = overrides.get("logger") or setup_logger(role.capitalize())
    recorder = overrides.get("recorder") or OutcomeRecorder(
        risk_per_trade=config.get_risk_per_trade(),
        logger=setup_logger("OutcomeRecorder"),
    )
    components: Dict[str, object] = {"logger": logger, "recorder": recorder}

    if role == "store":
        state_store = overrides.get("state_store") or SQLiteStateStore(config.get_db_path())
        components["state_store"] = state_store
        components["server"] = StoreServer(
            state_store,
            recorder=recorder,
            host=config.get_store_host(),
            port=config.get_store_port(),
            logger=logger,
        )
        logger.info("✅ Store server initialized (db %s).", config.get_db_path())
        return components

    ctx = overrides.get("context") or TradingContext.for_assets(config.get_assets())
    components["context"] = ctx

    if role == "monitor":
        synchronizer = overrides.get("synchronizer") or StoreSynchronizer(
            ctx,
            config.get_store_url(),
            timeout=config.get_store_timeout(),
            read_only=True,
            logger=logger,
        )
        fetcher = overrides.get("fetcher") or PriceFetcher(
            config.get_symbol_map(), logger, timeout=config.get_store_timeout()
        )
        components.update(synchronizer=synchronizer, fetcher=fetcher)
        components["monitor"] = ExitMonitor(
            ctx,
            synchronizer=synchronizer,
            fetcher=fetcher,
            interval=config.get_monitor_interval(),
            logger=logger,
        )
        logger.info("✅ Exit monitor initialized (read-only).")
        return components

    if role != "engine":
        raise ValueError(f"Unknown role: {role!r}")

    preset = get_preset(config.get_risk_mode())
    synchronizer = overrides.get("synchronizer") or StoreSynchronizer(
        ctx,
        config.get_store_url(),
        timeout=config.get_store_timeout(),
        logger=setup_logger("StoreSynchronizer"),
    )
    signal_generator = overrides.get("signal_generator") or SignalGenerator(
        preset,
        trade_planner=TradePlanner(preset),
        cooldown_seconds=config.get_signal_cooldown(),
        logger=setup_logger("SignalGenerator"),
    )
    aggregator = PriceAggregator()
    engine = TradingEngine(
        ctx,
        aggregator=aggregator,
        classifier=RegimeClassifier(),
        state_machine=PositionStateMachine(recorder, logger=setup_logger("PositionStateMachine")),
        signal_generator=signal_generator,
        synchronizer=synchronizer,
        scan_interval=config.get_scan_interval(),
        logger=logger,
    )
    feed = overrides.get("feed")
    if feed is None:
        feed = PriceFeedClient(
            config.get_symbol_map(),
            engine.on_tick,
            config.get_feed_url(),
            setup_logger("PriceFeedClient"),
            max_retries=config.get_max_retries(),
        )
    engine.feed = feed

    logger.info("✅ Risk mode: %s", preset.name)
    logger.info("✅ Tracking assets: %s", ", ".join(config.get_assets()))
    logger.info("✅ Store: %s", config.get_store_url())

    components.update(
        synchronizer=synchronizer,
        signal_generator=signal_generator,
        feed=feed,
        engine=engine,
    )
    return components
