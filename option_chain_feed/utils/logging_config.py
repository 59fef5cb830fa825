import logging
import sys
from typing import Iterable, Union

# Libraries that log every request or chunk at INFO
NOISY_LOGGERS = ("aiohttp.access", "aiohttp.client", "asyncio")


def setup_logging(level: Union[int, str] = logging.INFO, quiet: Iterable[str] = NOISY_LOGGERS):
    """
    Sets up centralized logging configuration for the feed.

    Configures the root logger with a StreamHandler that outputs to stderr
    using a standard format including timestamp, logger name, level,
    filename, line number, and the message.

    Args:
        level: The minimum logging level to capture (e.g., logging.INFO, "DEBUG").
        quiet: Logger names capped at WARNING regardless of level.
    """
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level}")
        level = resolved

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Prevent adding duplicate handlers if setup_logging is called multiple times
    if not root_logger.handlers:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
        )
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in quiet:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    root_logger.info("Centralized logging configured.")
