"""Logging helpers shared by all wordrelay modules."""

from __future__ import annotations

import logging
import sys

ROOT_LOGGER = "wordrelay"
PROVIDER_LOGGER = "wordrelay.providers"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def configure_logging(verbose: bool = False, provider_debug: bool = False) -> logging.Logger:
    """Attach a single console handler to the package logger.

    ``provider_debug`` lets provider request/response dumps through at
    DEBUG without turning on debug output for the rest of the package.
    """

    logger = logging.getLogger(ROOT_LOGGER)
    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)

    # Prevent duplicate handlers when called more than once
    for handler in list(logger.handlers):
        if getattr(handler, "_wordrelay", False):
            logger.removeHandler(handler)
            handler.close()

    c_handler = logging.StreamHandler(sys.stderr)
    c_handler.setLevel(logging.DEBUG if provider_debug else level)
    c_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    c_handler._wordrelay = True  # type: ignore[attr-defined]
    logger.addHandler(c_handler)
    logging.getLogger(PROVIDER_LOGGER).setLevel(logging.DEBUG if provider_debug else logging.NOTSET)
    return logger
