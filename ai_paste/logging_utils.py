"""Logging helpers with color output to stderr."""

from __future__ import annotations

import logging
import os
from typing import Optional

from colorlog import ColoredFormatter

ROOT_LOGGER_NAME = "ai_paste"

_LOGGER: Optional[logging.Logger] = None


def _configure_root() -> logging.Logger:
    global _LOGGER
    if _LOGGER is not None:
        return _LOGGER

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            ColoredFormatter("%(log_color)s[%(levelname)s] %(name)s: %(message)s")
        )
        logger.addHandler(handler)
    level = os.getenv("AIPASTE_LOG_LEVEL", "INFO").strip().upper()
    logger.setLevel(getattr(logging, level, logging.INFO))
    logger.propagate = False
    _LOGGER = logger
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the package logger, or a child of it when ``name`` is given.

    Children share the root handler, so ``get_logger(__name__)`` from any
    module inside ``ai_paste`` writes through the same colored stream.
    """
    root = _configure_root()
    if not name or name == ROOT_LOGGER_NAME:
        return root
    if name.startswith(ROOT_LOGGER_NAME + "."):
        name = name[len(ROOT_LOGGER_NAME) + 1:]
    return root.getChild(name)
