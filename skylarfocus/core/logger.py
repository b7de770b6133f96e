"""
Logging configuration for SkylarFocus.

Uses loguru for structured, colorful logging with rotation and filtering.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from loguru import logger

if TYPE_CHECKING:
    from .config import SkylarConfig

PROJECT_ROOT = Path(__file__).parent.parent.parent
LOG_DIR = PROJECT_ROOT / "data" / "logs"

_handler_ids: list = []


def setup_logging(config: SkylarConfig | None = None, log_dir: Optional[Path] = None) -> None:
    """
    Configure logging for SkylarFocus.

    Replaces loguru's default handler, so calling it again reconfigures
    rather than duplicating sinks.

    Args:
        config: Optional configuration. If not provided, uses defaults.
        log_dir: Directory for log files (default: data/logs).
    """
    log_dir = Path(log_dir) if log_dir else LOG_DIR
    if config and log_dir == LOG_DIR:
        log_dir = Path(config.general.data_dir) / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    log_level = "INFO"
    if config:
        log_level = config.general.log_level
        if config.general.debug:
            log_level = "DEBUG"

    logger.remove()
    _handler_ids.clear()

    # Console handler with colors
    _handler_ids.append(logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=log_level,
        colorize=True,
        backtrace=True,
        diagnose=False,
    ))

    # File handler for all logs
    _handler_ids.append(logger.add(
        log_dir / "skylarfocus_{time:YYYY-MM-DD}.log",
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}",
        level="DEBUG",
        rotation="00:00",
        retention="7 days",
        compression="zip",
        backtrace=True,
        diagnose=False,
    ))

    # Separate file for errors only
    _handler_ids.append(logger.add(
        log_dir / "skylarfocus_errors_{time:YYYY-MM-DD}.log",
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}",
        level="ERROR",
        rotation="00:00",
        retention="30 days",
        compression="zip",
        backtrace=True,
        diagnose=False,
    ))

    logger.info("SkylarFocus logging initialized")


__all__ = ["logger", "setup_logging"]
