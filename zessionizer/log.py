"""
zessionizer - Logging setup

Every module logs through `logging.getLogger(__name__)`; `configure()`
installs the single stderr handler so the interactive side never prints
to stdout.
"""

import logging
import sys

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_configured = False


def configure(level: str = "WARNING") -> None:
    """Install the stderr handler on the package logger (idempotent)."""
    global _configured
    logger = logging.getLogger("zessionizer")
    numeric = logging.getLevelName(str(level).upper())
    if not isinstance(numeric, int):
        numeric = logging.WARNING
    logger.setLevel(numeric)

    if _configured:
        return
    _configured = True

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(handler)
