"""
Standardized logging configuration.

Every module gets its logger with get_logger(__name__). Output goes to
stderr; the level comes from PROJECTION_LOG_LEVEL (default INFO).
"""

import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_configured = False


def get_logger(name: str) -> logging.Logger:
    """Return the named logger."""
    return logging.getLogger(name)


def configure_logging(level: Optional[str] = None) -> None:
    """
    Install a single stderr handler on the root logger.

    Safe to call repeatedly: the handler is added once, later calls only
    adjust the level.
    """
    global _configured

    level_name = (level or os.getenv("PROJECTION_LOG_LEVEL", "INFO")).upper()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))

    if _configured:
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    _configured = True
