"""
Logging configuration for the codebase cleanup tool.

Every module logs through ``logging.getLogger(__name__)``; this module wires
those loggers to the terminal (via Rich, on stderr so it never mixes with
the console summaries) and, optionally, to a plain log file.
"""

from __future__ import annotations

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from ..core.errors import ConfigError

PACKAGE_LOGGER = "codebase_cleanup"
FILE_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the package logger.

    Parameters
    ----------
    verbose:
        Log at DEBUG instead of INFO.
    log_file:
        Optional path that receives a copy of every record.

    Calling this again replaces the handlers installed by a previous call.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    logger.propagate = False

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    console_handler = RichHandler(
        console=Console(stderr=True),
        show_path=verbose,
        rich_tracebacks=True,
    )
    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Cannot open log file {log_file!r}: {exc}") from exc
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
        logger.addHandler(file_handler)
        logger.debug("Logging to file: %s", log_file)

    return logger
