from modules.trade_planner import RISK_PRESETS


def validate_config(config: dict):
    required_keys = [
        "ASSETS",
        "SYMBOL_MAP",
        "RISK_MODE",
        "STORE_URL",
    ]

    missing = [k for k in required_keys if k not in config or not config[k]]
    if missing:
        raise ValueError(f"Missing required configuration keys: {missing}")

    if not isinstance(config["ASSETS"], list) or not config["ASSETS"]:
        raise TypeError("ASSETS must be a non-empty list.")

    if not isinstance(config["SYMBOL_MAP"], dict):
        raise TypeError("SYMBOL_MAP must be a dictionary.")

    if sorted(config["SYMBOL_MAP"].values()) != sorted(config["ASSETS"]):
        raise ValueError("SYMBOL_MAP must map exactly one exchange symbol to each asset.")

    if config["RISK_MODE"] not in RISK_PRESETS:
        raise ValueError(
            f"RISK_MODE must be one of {sorted(RISK_PRESETS)}, got {config['RISK_MODE']!r}"
        )

    for key in ("RISK_PER_TRADE", "SCAN_INTERVAL", "STORE_TIMEOUT", "MONITOR_INTERVAL"):
        if key in config and float(config[key]) <= 0:
            raise ValueError(f"{key} must be positive.")

    if "SIGNAL_COOLDOWN" in config and float(config["SIGNAL_COOLDOWN"]) < 0:
        raise ValueError("SIGNAL_COOLDOWN must not be negative.")
