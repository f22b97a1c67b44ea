# backend/mcqpdf/core/logging_utils.py
"""Logging utilities: one application logger, safe API key handling."""

from __future__ import annotations

import logging
from typing import Optional

APP_LOGGER = "mcqpdf"
_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """Attach console (and optional file) handlers to the app logger, once."""
    logger = logging.getLogger(APP_LOGGER)
    logger.setLevel(getattr(logging, (level or "INFO").upper(), logging.INFO))
    if logger.handlers:
        return logger

    fmt = logging.Formatter(_FORMAT)
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(fmt)
    logger.addHandler(stream_handler)

    if log_file:
        file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
        file_handler.setFormatter(fmt)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get the application logger, or a named child of it."""
    if not name or name == APP_LOGGER:
        return logging.getLogger(APP_LOGGER)
    if name.startswith(APP_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{APP_LOGGER}.{name}")


def safe_key_fingerprint(key: str) -> str:
    """Return a safe fingerprint of an API key for logging (never the full key)."""
    if not isinstance(key, str) or not key:
        return "<empty>"
    tail = key[-4:] if len(key) >= 4 else key
    return f"len={len(key)} tail=***{tail}"


def truncate_for_log(text: str, limit: int = 2000) -> str:
    if text is None:
        return "<none>"
    if len(text) <= limit:
        return text
    return f"{text[:limit]}... [{len(text) - limit} more chars]"
