"""Logging setup for the application."""
from __future__ import annotations

import logging
from logging import Logger

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_LEVEL = logging.INFO


def init_logging(level: str | int = LOG_LEVEL) -> None:
    """Configure root logging for the application and Uvicorn."""

    resolved = logging.getLevelName(level) if isinstance(level, str) else level
    logging.basicConfig(level=resolved, format=LOG_FORMAT, handlers=[logging.StreamHandler()])
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(resolved)


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)
