"""Logging setup shared by the CLI entry points."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(levelname)s %(name)s - %(message)s"
ROOT_LOGGER_NAME = "homepatch"

_handler: logging.Handler | None = None


def configure_logging(level_name: str = "WARNING") -> logging.Logger:
    """Attach a single stream handler to the ``homepatch`` logger.

    Unknown level names fall back to ``WARNING``. Calling this again swaps the
    handler for one bound to the current ``sys.stderr``.
    """

    global _handler

    level = getattr(logging, level_name.upper(), logging.WARNING)
    if not isinstance(level, int):
        level = logging.WARNING

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    if _handler is not None:
        logger.removeHandler(_handler)
    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(_handler)
    logger.setLevel(level)
    return logger


__all__ = ["LOG_FORMAT", "ROOT_LOGGER_NAME", "configure_logging"]
