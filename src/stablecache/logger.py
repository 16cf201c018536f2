"""logger.py - Logger factory shared by all stablecache modules"""

from __future__ import annotations

import logging

PACKAGE_LOGGER = "stablecache"

logging.getLogger(PACKAGE_LOGGER).addHandler(logging.NullHandler())


def get_logger(name: str) -> logging.Logger:
    """Return the logger for *name*, nested under the package logger.

    Applications configure output on the ``stablecache`` logger (or the root
    logger); the library itself only attaches a ``NullHandler``.
    """
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)
