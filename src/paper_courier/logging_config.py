"""Logging setup."""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

from concurrent_log_handler import ConcurrentRotatingFileHandler

LOGGER_NAME = "paper_courier"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: Union[str, int] = "INFO", log_dir: Optional[Path] = None) -> logging.Logger:
    """Configure the package logger with a console and an optional file handler.

    Safe to call more than once; handlers are only attached the first time.

    Args:
        level: Log level name or number
        log_dir: Directory for ``paper_courier.log``; no file logging if None

    Returns:
        The configured ``paper_courier`` logger
    """
    logger = logging.getLogger(LOGGER_NAME)

    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(level)

    # Avoid duplicate handlers if logger was already set up
    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        # Several processes may share the directory
        file_handler = ConcurrentRotatingFileHandler(
            str(log_dir / "paper_courier.log"),
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
