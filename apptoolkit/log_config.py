"""Logging bootstrap for the command-line entry point.

Library modules only create loggers with logging.getLogger(__name__); the
CLI calls setup_logging() once per invocation to attach a Rich handler to
the package logger.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER = "apptoolkit"


def setup_logging(level: str | int = logging.INFO) -> logging.Logger:
    """Configure the package logger to write to stderr through Rich.

    Calling it again replaces the previously installed handlers.

    Args:
        level: Level name (e.g. "DEBUG") or numeric level.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)

    return logger


__all__ = ["PACKAGE_LOGGER", "setup_logging"]
