"""Operational logging setup for the server process."""

from __future__ import annotations

import logging
import os
import sys
from typing import TextIO

LOGGER_NAME = "chunk_mcp"
LOG_LEVEL_ENV = "CHUNK_MCP_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "WARNING"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def resolve_log_level(level: str | None = None) -> int:
    """Resolve a level name from the argument, then the environment, then the default."""
    name = level or os.getenv(LOG_LEVEL_ENV, "") or DEFAULT_LOG_LEVEL
    value = logging.getLevelName(name.strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {name}")
    return value


def configure_logging(level: str | None = None, stream: TextIO | None = None) -> logging.Logger:
    """Install a single stderr handler on the package logger.

    Stdout carries protocol responses, so log records never go there.
    Calling this again replaces the handler instead of stacking another.
    """
    package_logger = logging.getLogger(LOGGER_NAME)
    for handler in list(package_logger.handlers):
        if getattr(handler, "_chunk_mcp_handler", False):
            package_logger.removeHandler(handler)
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._chunk_mcp_handler = True  # type: ignore[attr-defined]
    package_logger.addHandler(handler)
    package_logger.setLevel(resolve_log_level(level))
    package_logger.propagate = False
    return package_logger
