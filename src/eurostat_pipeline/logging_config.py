"""
Centralized logging configuration for the Eurostat indicators pipeline.

Every module obtains its logger through ``create_logger(__name__)``; the
console output is color-coded by level and an optional plain-text file
log can be enabled with ``LOG_DIR``.
"""

import logging
import os
import sys
from typing import Optional, Union

import colorlog

from eurostat_pipeline.exceptions import (
    ConfigurationError,
    LocalFileError,
    NoDataAvailableError,
    TransientError,
)

DEFAULT_LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEFAULT_LOG_DIR = os.getenv("LOG_DIR") or None

CONSOLE_FORMAT = "%(log_color)s[%(levelname)s]%(reset)s %(blue)s[%(name)s]%(reset)s %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}

# Troubleshooting hints printed by log_exception, most specific type first
TROUBLESHOOTING = (
    (ConfigurationError, [
        "Check the environment variables and the .env file",
        "Numeric settings (FETCH_YEARS, BATCH_SIZE, ...) must be positive",
    ]),
    (TransientError, [
        "Check network access to the Eurostat dissemination API",
        "Retry later or run with --local-only",
    ]),
    (LocalFileError, [
        "Verify LOCAL_DATA_PATH points to a JSON list of records",
    ]),
    (NoDataAvailableError, [
        "Check the internet connection",
        "Verify the local fallback file (LOCAL_DATA_PATH)",
    ]),
)


def _console_handler(log_level) -> logging.Handler:
    handler = colorlog.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(colorlog.ColoredFormatter(CONSOLE_FORMAT, log_colors=LOG_COLORS))
    return handler


def _file_handler(name: Optional[str], log_level, log_dir: Optional[str],
                  log_file: Optional[str]) -> logging.Handler:
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    log_file = log_file or f"{name or 'eurostat_pipeline'}.log"
    if log_dir:
        log_file = os.path.join(log_dir, log_file)

    handler = logging.FileHandler(log_file)
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    return handler


def create_logger(
    name: Optional[str] = None,
    log_level: Union[int, str] = DEFAULT_LOG_LEVEL,
    log_dir: Optional[str] = DEFAULT_LOG_DIR,
    log_file: Optional[str] = None,
):
    """
    Create a color-coded logger with optional file logging.

    Calling it again for the same name replaces the handlers instead of
    stacking them.

    :param name: Name of the logger (typically __name__)
    :param log_level: Logging level (default: LOG_LEVEL env or INFO)
    :param log_dir: Directory to store log files (default: LOG_DIR env)
    :param log_file: Specific log file name (optional)
    :return: Configured logger instance
    """
    logger = colorlog.getLogger(name or __name__)
    logger.setLevel(log_level)
    logger.propagate = False

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    logger.addHandler(_console_handler(log_level))
    if log_dir or log_file:
        logger.addHandler(_file_handler(name, log_level, log_dir, log_file))

    return logger


def log_exception(logger, e, context=None, headline="LOAD FAILED"):
    """
    Log an exception with its type, optional context and matching hints.

    :param logger: Logger instance
    :param e: Exception object
    :param context: Optional additional context for the error
    :param headline: Banner text for the first line
    """
    logger.critical(f"🚨 {headline} 🚨")
    logger.critical(f"Error Type: {type(e).__name__}")
    logger.critical(f"Error Details: {str(e)}")

    if context:
        logger.critical(f"Context: {context}")

    for error_type, hints in TROUBLESHOOTING:
        if isinstance(e, error_type):
            logger.critical("Troubleshooting:")
            for number, hint in enumerate(hints, start=1):
                logger.critical(f"  {number}. {hint}")
            break
