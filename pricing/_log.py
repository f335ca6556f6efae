"""
Logging configuration for pricing.

One package logger, level from PRICING_LOG_LEVEL (default: INFO).
"""

import logging
import os
import sys

LOG_LEVEL = os.getenv("PRICING_LOG_LEVEL", "INFO").upper()

logger = logging.getLogger("pricing")
logger.setLevel(LOG_LEVEL)

if not logger.handlers:
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(LOG_LEVEL)
    console_handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(console_handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """Child of the package logger, e.g. get_logger("catalog") -> pricing.catalog."""
    if name:
        return logging.getLogger(f"pricing.{name}")
    return logger


__all__ = ("get_logger", "logger")
