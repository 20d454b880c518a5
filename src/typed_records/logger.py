"""
Centralized logging configuration.

All modules use ``get_logger(__name__)`` to obtain a logger. Handlers are
attached once, to the package logger only, so applications keep control of
the root logger.
"""

from __future__ import annotations

import logging
import sys

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_PACKAGE = "typed_records"
_initialized = False


def configure_logging(level: int | str = logging.WARNING) -> None:
    """Configure the package logger once; later calls only change the level."""
    global _initialized
    package_logger = logging.getLogger(_PACKAGE)
    package_logger.setLevel(level)
    if _initialized:
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, _DATE_FORMAT))
    package_logger.addHandler(handler)
    _initialized = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a named logger instance.

    Args:
        name: Usually ``__name__`` of the calling module.

    Returns:
        A logging.Logger under the package hierarchy.
    """
    return logging.getLogger(name)
