"""Logging utilities."""

import logging
import os
import sys
from pathlib import Path
from typing import Optional


LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "critical": logging.CRITICAL,
}

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def parse_log_level(level: str) -> int:
    """Map a CLI log level name to a logging level."""
    try:
        return LOG_LEVELS[level.lower()]
    except KeyError:
        raise ValueError(
            f"invalid log level {level}, one of: debug, info, warn, error, fatal"
        ) from None


def setup_logging(level: str = "info", log_file: Optional[Path] = None):
    """Setup logging configuration."""
    log_level = parse_log_level(level)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, mode="a", encoding="utf-8"))
        os.chmod(log_file, 0o644)

    # Configure root logger
    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=handlers,
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("docker").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
