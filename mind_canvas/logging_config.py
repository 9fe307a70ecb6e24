"""Loguru setup for the mind canvas engine."""

from __future__ import annotations

import sys

from loguru import logger


def configure_logging(
    level: str = "INFO",
    file_path: str | None = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """Configure loguru sinks.

    Args:
        level: Minimum level for the console sink (e.g. "DEBUG", "INFO")
        file_path: Optional log file; everything from DEBUG up is written there
        rotation: Log file rotation size
        retention: How long to keep rotated files
    """
    logger.remove()

    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
               "<level>{level: <8}</level> | "
               "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
               "<level>{message}</level>",
        colorize=True,
    )

    if file_path:
        logger.add(
            file_path,
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}",
            rotation=rotation,
            retention=retention,
            enqueue=True,
        )

    logger.debug(f"Logging configured (level={level.upper()}, file={file_path})")
