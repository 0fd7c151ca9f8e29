"""Structured logging setup for stackform."""

import logging
import os
import sys
from typing import Optional, Union


def setup_logging(level: Union[int, str, None] = None, format_string: Optional[str] = None) -> logging.Logger:
    """
    Set up structured logging for stackform.

    Args:
        level: Logging level or level name (default: STACKFORM_LOG_LEVEL or WARNING)
        format_string: Custom format string (optional)

    Returns:
        Configured logger instance
    """
    if level is None:
        level = os.environ.get("STACKFORM_LOG_LEVEL", "WARNING")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=level,
        format=format_string,
        stream=sys.stderr,
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    logger = logging.getLogger("stackform")
    logger.setLevel(level)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a specific module."""
    return logging.getLogger(f"stackform.{name}")
