"""Logging setup for the command-line tool."""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "meterwatch"


def setup_logging(verbose: bool = False, console: Console | None = None) -> logging.Logger:
    """Send package log records through a rich handler on stderr.

    Safe to call more than once; the handler is only installed the first time.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        logger.addHandler(handler)
        logger.propagate = False

    return logger
