"""
Audioscribe - Logging configuration

All modules log through loguru's shared `logger`; entry points call
configure_logging() once to pick the stderr level.
"""

from __future__ import annotations

import sys

from loguru import logger


def configure_logging(level: str = "INFO") -> None:
    """Route loguru output to stderr at *level* (DEBUG, INFO, WARNING, ...)."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )
