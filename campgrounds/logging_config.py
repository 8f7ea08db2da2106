# campgrounds/logging_config.py
"""Logging setup shared by the API process and the expiry worker."""
from __future__ import annotations

import logging
import os

_LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def configure_logging(level: str | None = None) -> logging.Logger:
    logger = logging.getLogger("campgrounds")
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)

    logger.setLevel((level or _LOG_LEVEL).upper())
    logger.addHandler(handler)
    logger.propagate = False

    return logger
