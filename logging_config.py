"""
logging_config.py - Shared logging setup for the expense insights modules.

Every module logs through a named logger from `get_logger`; only the entry
points (CLI and API) call `setup_logging`.
"""

from __future__ import annotations

import logging
import os
import sys

LOG_FORMAT = "%(asctime)s [%(name)-18s] %(levelname)-7s %(message)s"
JSON_LOG_FORMAT = (
    '{"timestamp":"%(asctime)s","level":"%(levelname)s",'
    '"module":"%(name)s","message":"%(message)s"}'
)


def setup_logging(level: int | None = None, json_format: bool = False) -> None:
    """Configure the root logger.

    Args:
        level: Logging level. Falls back to LOG_LEVEL from the environment,
            then INFO.
        json_format: If True, emit one JSON-like object per log line.
    """
    if level is None:
        level_name = os.getenv("LOG_LEVEL", "INFO").strip().upper()
        level = logging.getLevelName(level_name)
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    formatter = logging.Formatter(
        JSON_LOG_FORMAT if json_format else LOG_FORMAT,
        datefmt="%H:%M:%S",
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Get a named logger."""
    return logging.getLogger(name)
