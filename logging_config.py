"""
Logging configuration for cleaner CLI output.

Usage:
    import logging_config
    logging_config.setup()
"""

import logging
import sys

# Application logger namespaces; loggers created at import time may carry
# their own handler from stable_arbitrage.utils.get_logger()
APP_LOGGERS = ("xchain", "stable_arbitrage", "run_xchain_paper", "__main__")


def setup(level=logging.INFO):
    """
    Configure logging for cleaner, more readable output.

    - Single stdout handler on the root logger
    - Uses shorter timestamp format (HH:MM:SS instead of full datetime)
    - Suppresses verbose RPC request logs from web3 and urllib3
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    # Root logger - minimal format
    root = logging.getLogger()
    root.setLevel(level)

    # Clear existing handlers
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)

    # Minimal format: time + level + logger + message
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    )
    console.setFormatter(formatter)
    root.addHandler(console)

    # Hand application loggers back to the root handler
    for name, logger in list(logging.Logger.manager.loggerDict.items()):
        if not isinstance(logger, logging.Logger):
            continue
        if name.split(".")[0] in APP_LOGGERS:
            logger.handlers.clear()
            logger.setLevel(logging.NOTSET)
            logger.propagate = True

    # Suppress noisy loggers
    logging.getLogger("web3").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

