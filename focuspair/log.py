"""Logging setup (loguru)."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger


LOG_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{thread.name}</cyan> | {message}"
)
LOG_ROTATION = "1 MB"
LOG_RETENTION = 5


def setup_logging(level: str = "INFO", log_file: str | Path | None = None) -> None:
    """Configure application logging"""
    # Remove default logger
    logger.remove()

    logger.add(
        sys.stderr,
        format=LOG_FORMAT,
        level=level,
        colorize=True,
    )

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            format=LOG_FORMAT,
            level=level,
            rotation=LOG_ROTATION,
            retention=LOG_RETENTION,
            encoding="utf-8",
        )
