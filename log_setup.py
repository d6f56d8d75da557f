"""Loguru sink configuration."""

from __future__ import annotations

import os
import sys

from loguru import logger

LOGGER_FORMAT = (
    "<green>{time:MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{thread.name} - <level>{message}</level>"
)


def configure_logging(level: str | None = None) -> None:
    effective_level = (level or os.getenv("FORTNER_LOG_LEVEL") or "INFO").upper()
    logger.remove()
    logger.add(sys.stderr, level=effective_level, format=LOGGER_FORMAT)
