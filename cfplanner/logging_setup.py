"""Loguru sink configuration shared by the CLI entry point."""

from __future__ import annotations

import sys

from loguru import logger

from config import get_settings


def configure_logging(level: str | None = None, log_file: str | None = None) -> None:
    """
    Replace the default loguru sink.

    Args:
        level: Minimum level (default from config)
        log_file: Optional rotating log file (default from config)
    """
    settings = get_settings()
    level = level or settings.log_level
    log_file = log_file or settings.log_file

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if log_file:
        logger.add(log_file, level=level, rotation="10 MB", retention=5, encoding="utf-8")
