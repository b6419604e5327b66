"""Logging configuration for eventstats.

The library never configures logging on import. Embedding applications call
``configure_logging()`` once at startup; library modules only ask for a logger.

Usage:
    from .logging_config import configure_logging, get_logger

    # In the application entry point:
    configure_logging()

    # In any module:
    logger = get_logger(__name__)
    logger.debug("Cache miss for %s", key)
"""

import logging
import os
import sys

# Default log level (can be overridden by EVENTSTATS_LOG_LEVEL env var)
DEFAULT_LOG_LEVEL = "WARNING"

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Suppress noisy third-party loggers
SUPPRESSED_LOGGERS = [
    "asyncio",
    "aiofiles",
]


def configure_logging(
    level: str | None = None,
    format_string: str | None = None,
) -> logging.Logger:
    """Configure logging to write to stderr.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to EVENTSTATS_LOG_LEVEL env var or WARNING.
        format_string: Custom format string for log messages.

    Returns:
        The configured eventstats logger.
    """
    if level is None:
        level = os.getenv("EVENTSTATS_LOG_LEVEL", DEFAULT_LOG_LEVEL)
    level = level.upper()

    numeric_level = getattr(logging, level, None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.WARNING

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(logging.Formatter(format_string or DEFAULT_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Remove any existing handlers to avoid duplicates
    for existing_handler in root_logger.handlers[:]:
        root_logger.removeHandler(existing_handler)

    root_logger.addHandler(handler)

    eventstats_logger = logging.getLogger("eventstats")
    eventstats_logger.setLevel(numeric_level)

    for logger_name in SUPPRESSED_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    return eventstats_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger for the specified module.

    Args:
        name: Module name (usually __name__).

    Returns:
        Logger instance under the eventstats namespace.
    """
    if not name.startswith("eventstats"):
        name = f"eventstats.{name}"
    return logging.getLogger(name)
