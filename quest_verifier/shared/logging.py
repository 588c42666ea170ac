"""
Lightweight logging utilities for the Quest Verifier.

Provides a consistent logger with a simple console handler and optional
log-level override via the QV_LOG_LEVEL environment variable. When
QV_LOG_DIR is set, rotating combined.log / error.log files are written too.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

_DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _make_file_handler(path: Path, level: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        str(path), maxBytes=1_000_000, backupCount=3, encoding="utf-8"
    )
    handler.setFormatter(logging.Formatter(_DEFAULT_FORMAT))
    handler.setLevel(level)
    return handler


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a configured logger with a stream handler.

    The first time a logger is created, a StreamHandler is attached with a
    plain-text formatter. Subsequent calls reuse the existing configuration.

    Log level can be overridden with the QV_LOG_LEVEL environment variable.
    """
    logger = logging.getLogger(name if name else __name__)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_DEFAULT_FORMAT))
        logger.addHandler(handler)

        log_dir = os.getenv("QV_LOG_DIR")
        if log_dir:
            Path(log_dir).mkdir(parents=True, exist_ok=True)
            logger.addHandler(
                _make_file_handler(Path(log_dir) / "combined.log", logging.DEBUG)
            )
            logger.addHandler(
                _make_file_handler(Path(log_dir) / "error.log", logging.ERROR)
            )

        level_str = os.getenv("QV_LOG_LEVEL", "INFO").upper()
        level = getattr(logging, level_str, logging.INFO)
        logger.setLevel(level)

    return logger
