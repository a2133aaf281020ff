"""Logging setup shared by every module of the package."""

from __future__ import annotations

import logging
import sys


_LOGGER_INITIALIZED = False


def configure_logging(level: str | None = None) -> None:
    """Configure process-wide logging once."""
    global _LOGGER_INITIALIZED
    if _LOGGER_INITIALIZED:
        return

    from .settings import get_settings

    resolved_level = (level or get_settings().log_level).upper()
    logging.basicConfig(
        level=resolved_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    _LOGGER_INITIALIZED = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger for ``name``; configuration happens on first bootstrap."""
    return logging.getLogger(name)
