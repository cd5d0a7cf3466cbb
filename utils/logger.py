# utils/logger.py
"""
Logging for the three process roles (engine, monitor, store).

Every component asks ``setup_logger(<ComponentName>)`` for its logger; each
gets a console handler plus a size-rotated file handler.  All lines carry the
role of the process that wrote them, so an engine and a monitor sharing one
log directory can still be told apart:

    2024-05-01 12:00:03 [INFO] engine/SignalGenerator: [btc] LONG admitted ...

Environment (see config.env.example):
    LOG_LEVEL     default level for new loggers
    LOG_FILE      rotating log file; empty disables file output
    LOG_MAX_MB    size at which the file rotates
    LOG_BACKUPS   rotated files kept
"""
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(role)s/%(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# transport libraries log every frame / request at INFO or DEBUG
_NOISY_LIBRARIES = ("websockets", "aiohttp.access", "asyncio")

_role = "main"


def _env_int(key: str, default: int) -> int:
    raw = os.getenv(key, str(default))
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from None


_DEFAULT_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
_DEFAULT_FILE = os.getenv("LOG_FILE", "logs/paper_tracker.log")
_MAX_BYTES = _env_int("LOG_MAX_MB", 5) * 1024 * 1024
_BACKUPS = _env_int("LOG_BACKUPS", 5)


class RoleFilter(logging.Filter):
    """Stamps each record with the process role current at emit time."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.role = _role
        return True


def set_log_role(role: str) -> None:
    """Called once by the entrypoint; loggers created at import time follow too."""
    global _role
    _role = role


def setup_logger(name: str,
                 level: Union[str, int] = _DEFAULT_LEVEL,
                 log_file: Optional[str] = _DEFAULT_FILE,
                 to_console: bool = True) -> logging.Logger:
    """Return the component logger `name`, attaching handlers on first use only."""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(level)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers = []
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(
            RotatingFileHandler(log_file, maxBytes=_MAX_BYTES, backupCount=_BACKUPS, encoding="utf-8")
        )
    if to_console:
        handlers.append(logging.StreamHandler())

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(level)
        handler.addFilter(RoleFilter())
        logger.addHandler(handler)

    for lib in _NOISY_LIBRARIES:
        logging.getLogger(lib).setLevel(logging.WARNING)

    return logger
