"""
Process-wide logging setup for the scanner CLI and the API server.

Usage:
    import logging_config
    logging_config.setup()
"""

import logging
import sys

APP_LOGGER_PREFIXES = ("dex", "pair_arbitrage", "__main__")


def _strip_app_handlers(level) -> None:
    """Drop per-module handlers from get_logger() so records reach the root handler only once."""
    for name, logger in list(logging.root.manager.loggerDict.items()):
        if not isinstance(logger, logging.Logger):
            continue
        if name.split(".")[0] in APP_LOGGER_PREFIXES:
            logger.handlers.clear()
            logger.setLevel(level)
            logger.propagate = True


def setup(level=logging.INFO):
    """
    Configure logging for readable console output.

    - Suppresses per-request access logs from uvicorn
    - Uses a short timestamp format (HH:MM:SS)
    - Routes every scanner logger through one stdout handler
    """
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-7s | %(message)s", datefmt="%H:%M:%S"
    )
    console.setFormatter(formatter)
    root.addHandler(console)

    _strip_app_handlers(level)

    # Suppress noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    logging.getLogger("fastapi").setLevel(logging.WARNING)
    logging.getLogger("web3").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def setup_minimal():
    """Only warnings and errors."""
    setup(level=logging.WARNING)


def setup_debug():
    """
    Verbose logging for debugging.
    Shows everything including HTTP requests.
    """
    setup(level=logging.DEBUG)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
