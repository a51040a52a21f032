"""
Common utilities for the pair arbitrage scanner.

Centralizes timestamp handling, percentage math and logger construction so
every module formats times and log lines the same way.
"""

import logging
import time
from datetime import date, datetime, timezone
from typing import Union


# Timestamp utilities
def get_current_timestamp_ms() -> int:
    """Get current Unix timestamp in milliseconds."""
    return int(time.time() * 1000)


def timestamp_to_iso(timestamp: float) -> str:
    """Convert Unix timestamp (seconds) to ISO 8601 string."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


def utc_date_from_ms(timestamp_ms: int) -> str:
    """Calendar date (UTC, YYYY-MM-DD) of a millisecond timestamp."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).date().isoformat()


def utc_today() -> str:
    """Current UTC calendar date as YYYY-MM-DD."""
    return datetime.now(tz=timezone.utc).date().isoformat()


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD, raising ValueError on anything else."""
    return date.fromisoformat(value)


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human-readable string."""
    if seconds < 60:
        return f"{seconds:.2f}s"
    elif seconds < 3600:
        return f"{seconds / 60:.1f}m"
    else:
        return f"{seconds / 3600:.1f}h"


# Math utilities
def calculate_percentage(value: float, total: float) -> float:
    """Calculate percentage with zero-division protection."""
    if total == 0:
        return 0.0
    return (value / total) * 100


# Logging utilities
def get_logger(
    name: str,
    level: Union[str, int] = logging.INFO,
) -> logging.Logger:
    """
    Get a logger with consistent formatting.

    A stream handler is attached the first time a name is requested;
    ``logging_config.setup()`` strips these when it installs the root handler.

    Args:
        name: Logger name (typically __name__)
        level: Logging level

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)

    if logger.level == logging.NOTSET:
        logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        format_str = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"

        handler.setFormatter(logging.Formatter(format_str, datefmt="%H:%M:%S"))
        logger.addHandler(handler)

    return logger
