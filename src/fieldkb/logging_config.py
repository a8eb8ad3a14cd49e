"""
Logging setup shared by the CLI and the API server.
"""

import logging
from typing import Union

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "fieldkb"


def setup_logging(
    level: Union[int, str] = logging.INFO,
    console: Console | None = None,
) -> logging.Logger:
    """
    Configure the package logger with a Rich console handler.

    Args:
        level: Logging level name or number (default: INFO)
        console: Console to render to (default: stderr)

    Returns:
        Configured package logger
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(name)s - %(message)s", datefmt="[%X]"))
    logger.addHandler(handler)

    return logger
