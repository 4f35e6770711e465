"""Loguru sinks for the reminder service: console plus rotating files."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)


def configure_logging(
    level: str = "INFO",
    log_dir: Optional[str] = "logs",
    rotation: str = "20 MB",
    retention: str = "14 days",
) -> None:
    """Replace default sinks; file sinks are skipped if the directory is not writable."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=LOG_FORMAT, colorize=True)

    if not log_dir:
        return

    try:
        path = Path(log_dir).resolve()
        path.mkdir(parents=True, exist_ok=True)
        logger.add(
            path / "reminder-bot_{time:YYYY-MM-DD}.log",
            level=level.upper(),
            rotation=rotation,
            retention=retention,
            compression="zip",
            enqueue=True,
        )
        logger.add(
            path / "reminder-bot-error_{time:YYYY-MM-DD}.log",
            level="ERROR",
            rotation=rotation,
            retention=retention,
            compression="zip",
            enqueue=True,
            backtrace=True,
        )
    except OSError as e:
        logger.warning(f"File logging disabled ({log_dir}): {e}")
