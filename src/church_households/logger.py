"""
Centralized logging for the household consolidation tools.

Every module calls ``get_logger(__name__)``. Loggers hang off a shared base
logger that owns a console handler and the master log file configured in
``config/church_households.yml``.
"""

import logging
from logging import Logger, StreamHandler
from logging.handlers import RotatingFileHandler
from pathlib import Path

from church_households.config import get_config

BASE_LOGGER_NAME = "church_households"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_base_configured: bool = False
_effective_level: int = logging.INFO


def _build_file_handler(path: Path, level: int, rotate: bool) -> logging.Handler:
    if rotate:
        handler = RotatingFileHandler(
            path,
            maxBytes=5 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
    else:
        handler = logging.FileHandler(path, encoding="utf-8")

    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def _configure_base_logger() -> Logger:
    """Configure the shared base logger once."""
    global _base_configured, _effective_level

    base_logger = logging.getLogger(BASE_LOGGER_NAME)
    if _base_configured:
        return base_logger

    cfg = get_config()
    level_name = str(cfg.logging.get("level", "INFO")).upper()
    _effective_level = logging.DEBUG if cfg.debug else getattr(logging, level_name, logging.INFO)

    base_logger.setLevel(_effective_level)
    base_logger.propagate = False

    log_dir = cfg.resolve_path("logs_dir")
    log_dir.mkdir(parents=True, exist_ok=True)
    base_logger.addHandler(
        _build_file_handler(
            log_dir / cfg.logging["file"],
            _effective_level,
            bool(cfg.logging.get("rotate", False)),
        )
    )

    console = StreamHandler()
    console.setLevel(logging.DEBUG if cfg.debug else logging.WARNING)
    console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    base_logger.addHandler(console)

    _base_configured = True
    return base_logger


def get_logger(name: str | None = None) -> Logger:
    """Return a child of the base logger, e.g. ``church_households.consolidation``."""
    base_logger = _configure_base_logger()
    if not name or name == BASE_LOGGER_NAME:
        return base_logger

    logger = base_logger.getChild(name.rsplit(".", 1)[-1])
    logger.setLevel(_effective_level)
    return logger
