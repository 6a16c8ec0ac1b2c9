"""Rotating file logs for the file manager.

Two loggers: ``evernode_fm`` (core events written through ``core_log``) and
``evernode_fm.access`` (one line per HTTP request). Without
``setup_logging`` both still work and simply propagate to the root logger.

Environment variables
- EFM_LOG_LEVEL: ERROR|WARNING|INFO|DEBUG (default: INFO)
- EFM_LOG_ACCESS_ENABLE: 0/1 (default: 0)
- EFM_LOG_ROTATE_MAX_MB: size of each file before rotation (default: 2)
- EFM_LOG_ROTATE_BACKUPS: rotated files to keep (default: 3)
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Dict, Tuple


CORE_LOGGER_NAME = "evernode_fm"
ACCESS_LOGGER_NAME = "evernode_fm.access"

DEFAULT_CORE_LEVEL = "INFO"
DEFAULT_ROTATE_MAX_MB = 2
DEFAULT_ROTATE_BACKUPS = 3

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "FATAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}

_STATE: Dict[str, object] = {
    "configured": False,
    "log_dir": None,
    "handlers": {},  # type: ignore
}


def _env_int(name: str, default: int) -> int:
    try:
        return int(str(os.environ.get(name, default)).strip())
    except ValueError:
        return default


def _rotation() -> Tuple[int, int]:
    """Return (max_bytes, backup_count), each at least one unit."""
    max_mb = max(1, _env_int("EFM_LOG_ROTATE_MAX_MB", DEFAULT_ROTATE_MAX_MB))
    backups = max(1, _env_int("EFM_LOG_ROTATE_BACKUPS", DEFAULT_ROTATE_BACKUPS))
    return max_mb * 1024 * 1024, backups


def _file_handler(path: str) -> RotatingFileHandler:
    max_bytes, backups = _rotation()
    h = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backups, encoding="utf-8", delay=True)
    h.setFormatter(logging.Formatter(LOG_FORMAT))
    return h


def setup_logging(log_dir: str) -> None:
    """Attach core.log and access.log handlers. Repeated calls only refresh settings."""
    if _STATE.get("configured"):
        refresh_runtime_from_env()
        return

    os.makedirs(log_dir, exist_ok=True)
    handlers = {
        "core": _file_handler(os.path.join(log_dir, "core.log")),
        "access": _file_handler(os.path.join(log_dir, "access.log")),
    }
    for name, logger_name in (("core", CORE_LOGGER_NAME), ("access", ACCESS_LOGGER_NAME)):
        logger = logging.getLogger(logger_name)
        logger.propagate = False
        logger.addHandler(handlers[name])

    _STATE.update(configured=True, log_dir=log_dir, handlers=handlers)
    refresh_runtime_from_env()


def refresh_runtime_from_env() -> None:
    level_name = os.environ.get("EFM_LOG_LEVEL", DEFAULT_CORE_LEVEL).strip().upper()
    logging.getLogger(CORE_LOGGER_NAME).setLevel(_LEVELS.get(level_name, logging.INFO))
    logging.getLogger(ACCESS_LOGGER_NAME).setLevel(logging.INFO)

    max_bytes, backups = _rotation()
    handlers: Dict[str, RotatingFileHandler] = _STATE.get("handlers") or {}  # type: ignore
    for h in handlers.values():
        h.maxBytes = max_bytes
        h.backupCount = backups


def access_enabled() -> bool:
    return os.environ.get("EFM_LOG_ACCESS_ENABLE", "").strip().lower() in ("1", "true", "yes", "on")


def access_logger() -> logging.Logger:
    return logging.getLogger(ACCESS_LOGGER_NAME)


def core_log(level: str, msg: str, **extra) -> None:
    """Write ``msg | k=v, ...`` into the core log (never raises)."""
    try:
        if extra:
            msg = f"{msg} | " + ", ".join(f"{k}={v}" for k, v in extra.items())
        logger = logging.getLogger(CORE_LOGGER_NAME)
        logger.log(_LEVELS.get(str(level or "").upper(), logging.INFO), msg)
    except Exception:
        pass
