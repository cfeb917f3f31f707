"""Centralized logging configuration for image-transform."""

import os
import sys
import logging
from typing import Optional

DEFAULT_LOGGER_NAME = "image-transform"

STRUCTURED_FORMAT = (
    "%(asctime)s | %(name)s | %(levelname)-8s | "
    "%(filename)s:%(lineno)d | %(funcName)s() | %(message)s"
)
SIMPLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _resolve_level(level: Optional[str]) -> int:
    # Explicit level, then LOG_LEVEL, then INFO; unknown names fall back to INFO.
    name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def _build_formatter(format_type: str) -> logging.Formatter:
    if os.getenv("LOG_FORMAT", format_type).lower() == "structured":
        return logging.Formatter(STRUCTURED_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    return logging.Formatter(SIMPLE_FORMAT)


def setup_logger(
    name: str = DEFAULT_LOGGER_NAME,
    level: Optional[str] = None,
    format_type: str = "structured",
) -> logging.Logger:
    """
    Configure a package logger writing to stdout.

    Args:
        name: Logger name (defaults to "image-transform")
        level: Log level override (defaults to env var or INFO)
        format_type: Logging format ("structured" or "simple")

    Returns:
        Configured logger instance

    Environment Variables:
        LOG_LEVEL: Set logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        LOG_FORMAT: Set format type ("structured" or "simple")
    """
    logger = logging.getLogger(name)
    configured = bool(logger.handlers)

    # Package children inherit their level from the package logger; later
    # lookups keep whatever level set_debug or the caller chose.
    inherits = name.startswith(f"{DEFAULT_LOGGER_NAME}.")
    if level or not (configured or inherits):
        logger.setLevel(_resolve_level(level))

    if not configured:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(_build_formatter(format_type))
        logger.addHandler(handler)

    # Each package logger owns a handler; propagating would print twice.
    logger.propagate = False
    return logger


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """Logger for ``name`` with the package configuration applied."""
    return setup_logger(name)


def set_debug(enabled: bool = True, name: str = DEFAULT_LOGGER_NAME) -> None:
    """Switch a logger and all of its configured children between DEBUG and INFO."""
    level = logging.DEBUG if enabled else logging.INFO
    logging.getLogger(name).setLevel(level)
    for logger_name in list(logging.root.manager.loggerDict):
        if logger_name.startswith(f"{name}."):
            logging.getLogger(logger_name).setLevel(level)


logger = setup_logger()
