from __future__ import annotations

import logging
import os


def get_logger(name: str, level: int | str | None = None) -> logging.Logger:
    """Create or reuse a module-level logger with a simple stdout handler."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(fmt="%(asctime)s %(levelname)s %(name)s: %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(level if level is not None else os.getenv("LOG_LEVEL", "INFO").upper())
    return logger


__all__ = ["get_logger"]
