"""
Common utilities for the cross-chain arbitrage system.

Centralizes timestamp handling, duration formatting and logger construction
so every module logs in the same structured format.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Union


# Timestamp utilities
def now_ms() -> int:
    """Get current Unix timestamp in integer milliseconds."""
    return int(time.time() * 1000)


def timestamp_ms_to_iso(timestamp_ms: int) -> str:
    """Convert a millisecond Unix timestamp to an ISO 8601 string."""
    return datetime.fromtimestamp(timestamp_ms / 1000.0, tz=timezone.utc).isoformat()


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human-readable string."""
    if seconds < 60:
        return f"{seconds:.2f}s"
    elif seconds < 3600:
        minutes = seconds / 60
        return f"{minutes:.1f}m"
    else:
        hours = seconds / 3600
        return f"{hours:.1f}h"


def format_usd(value: float, places: int = 4) -> str:
    """Format a USD amount with sign, e.g. -0.1000 -> '-$0.1000'."""
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.{places}f}"


# Logging utilities
def get_logger(name: str, level: Union[str, int] = logging.INFO) -> logging.Logger:
    """
    Get a structured logger with consistent formatting.

    When the root logger is already configured (the CLI calls
    logging_config.setup()), the logger is returned untouched so it inherits
    the root level and handler. Otherwise it gets its own handler and level.

    Args:
        name: Logger name (typically __name__)
        level: Logging level used when no root configuration exists

    Returns:
        Configured logger with structured output
    """
    logger = logging.getLogger(name)

    if not logger.handlers and not logging.getLogger().handlers:
        if logger.level == logging.NOTSET:
            logger.setLevel(level)

        handler = logging.StreamHandler()
        format_str = (
            "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | " "%(message)s"
        )
        handler.setFormatter(logging.Formatter(format_str, datefmt="%H:%M:%S"))
        logger.addHandler(handler)

    return logger
