"""Centralized logging configuration for the evaluator."""

import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

DEFAULT_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _parse_level(level: str) -> int:
    value = logging.getLevelName(str(level).upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def setup_logging(
    level: str = "INFO",
    log_to_file: bool = False,
    log_file: Optional[Path] = None,
    format_string: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Configure the root logger.

    Log records go to stderr by default so that stdout only carries results.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_to_file: Whether to also write logs to ``log_file``
        log_file: Path to log file (if log_to_file is True)
        format_string: Custom format string (uses default if None)
        stream: Console stream (defaults to sys.stderr)

    Returns:
        Configured root logger

    Example:
        >>> logger = setup_logging(level="DEBUG", log_to_file=True, log_file=Path("run.log"))
        >>> logger.info("Evaluation started")
    """
    numeric_level = _parse_level(level)
    formatter = logging.Formatter(format_string or DEFAULT_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(stream or sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_to_file and log_file:
        log_file_path = Path(log_file)
        log_file_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file_path, mode="a", encoding="utf-8")
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a module (typically ``__name__``)."""
    return logging.getLogger(name)


class LoggerMixin:
    """Adds a ``logger`` property named after the class."""

    @property
    def logger(self) -> logging.Logger:
        return get_logger(f"{self.__class__.__module__}.{self.__class__.__name__}")
