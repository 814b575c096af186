"""
Centralized logging configuration for the story reading engine

Levels, from most to least chatty:
- DEBUG: storage calls and path bookkeeping
- VERBOSE: every state transition of a reading session
- INFO: session start/finish, replay outcomes
- WARNING: recoverable problems (replay desync, undecodable paths)
- ERROR: persistence failures

Usage:
    from storyreader.utils.logger import get_logger, setup_logging

    setup_logging(level="INFO")
    logger = get_logger(__name__)
    logger.info("Session started")
"""

import logging
import sys
from pathlib import Path
from typing import Literal, Optional

# Between DEBUG (10) and INFO (20)
VERBOSE = 15
logging.addLevelName(VERBOSE, "VERBOSE")

# Color codes for terminal output
COLORS = {
    "DEBUG": "\033[36m",  # Cyan
    "VERBOSE": "\033[34m",  # Blue
    "INFO": "\033[32m",  # Green
    "WARNING": "\033[33m",  # Yellow
    "ERROR": "\033[31m",  # Red
    "CRITICAL": "\033[35m",  # Magenta
    "RESET": "\033[0m",
}

LogLevel = Literal["DEBUG", "VERBOSE", "INFO", "WARNING", "ERROR", "CRITICAL"]


class ColoredFormatter(logging.Formatter):
    """Custom formatter that adds colors to log levels"""

    def format(self, record):
        # Other handlers share the record
        record = logging.makeLogRecord(record.__dict__)
        levelname = record.levelname
        if levelname in COLORS:
            record.levelname = f"{COLORS[levelname]}{levelname}{COLORS['RESET']}"
        record.name = f"\033[94m{record.name}\033[0m"
        return super().format(record)


def _to_numeric_level(level: str) -> int:
    if level.upper() == "VERBOSE":
        return VERBOSE
    return getattr(logging, level.upper(), logging.INFO)


def setup_logging(
    level: LogLevel = "INFO",
    log_file: Optional[str] = None,
    enable_colors: bool = True,
    include_timestamp: bool = True,
    enable_file_logging: bool = False,
    enable_console_logging: bool = True,
) -> None:
    """
    Setup logging configuration for the application

    Args:
        level: Logging level (DEBUG, VERBOSE, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file
        enable_colors: Whether to enable colored output for console
        include_timestamp: Whether to include timestamp in log messages
        enable_file_logging: Write to ``log_file`` (defaults to logs/storyreader.log)
        enable_console_logging: Whether to log to stdout
    """
    numeric_level = _to_numeric_level(level)

    if include_timestamp:
        fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        datefmt = "%Y-%m-%d %H:%M:%S"
    else:
        fmt = "%(levelname)-8s | %(name)s | %(message)s"
        datefmt = None

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers = []

    if enable_console_logging:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(numeric_level)
        if enable_colors and sys.stdout.isatty():
            console_handler.setFormatter(ColoredFormatter(fmt, datefmt=datefmt))
        else:
            console_handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
        root_logger.addHandler(console_handler)

    if enable_file_logging or log_file:
        log_path = Path(log_file or "logs/storyreader.log")
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(numeric_level)
        # File logs don't need colors
        file_handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
        root_logger.addHandler(file_handler)

    # Silence noisy libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    root_logger.info(f"Logging initialized at {level} level")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module

    Args:
        name: Name of the logger (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


class LogLevelContext:
    """Context manager to temporarily change logging level"""

    def __init__(self, level: LogLevel):
        self.level = _to_numeric_level(level)
        self.old_level = None

    def __enter__(self):
        self.old_level = logging.getLogger().level
        logging.getLogger().setLevel(self.level)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        logging.getLogger().setLevel(self.old_level)
