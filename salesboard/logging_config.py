"""Logging configuration helpers for the salesboard service."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

LOG_DIR = os.getenv("SALESBOARD_LOG_DIR", "logs")
LOG_FILE = os.path.join(LOG_DIR, "salesboard.log")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DEFAULT_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def _file_handler(formatter: logging.Formatter) -> logging.Handler | None:
    # Serverless hosts mount a read-only filesystem; console logging still works there.
    try:
        os.makedirs(LOG_DIR, exist_ok=True)
        handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=1_000_000,
            backupCount=3,
            encoding="utf-8",
        )
    except OSError:
        return None
    handler.setFormatter(formatter)
    handler.setLevel(DEFAULT_LEVEL)
    return handler


def get_logger(name: str) -> logging.Logger:
    """Return a configured logger with console and rotating file handlers."""

    logger = logging.getLogger(name)
    logger.setLevel(DEFAULT_LEVEL)
    logger.propagate = False

    if not logger.handlers:
        formatter = logging.Formatter(LOG_FORMAT)

        file_handler = _file_handler(formatter)
        if file_handler is not None:
            logger.addHandler(file_handler)

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        console_handler.setLevel(DEFAULT_LEVEL)
        logger.addHandler(console_handler)

    return logger
