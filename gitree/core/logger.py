"""Logging configuration and utilities."""

import sys
import logging
from typing import Optional

LOGGER_NAME = 'gitree'


def setup_logging(debug: bool = False, log_file: Optional[str] = None) -> logging.Logger:
    """Configure logging to stderr and, optionally, a file.

    Standard output is reserved for the rendered tree, so console logging
    always goes to stderr.

    Args:
        debug: Enable DEBUG level output (default level is WARNING)
        log_file: Optional path of a log file to write in addition to stderr

    Returns:
        Configured logger instance
    """
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True  # Reset any existing configuration
    )

    logger = logging.getLogger(LOGGER_NAME)
    if log_file:
        logger.info(f"Log file: {log_file}")

    return logger

