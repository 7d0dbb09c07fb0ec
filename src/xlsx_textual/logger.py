"""Logging setup.

While the Textual session owns the terminal nothing may be written to
stderr, so records go either to a log file or to Textual's devtools
console through ``TextualHandler``.

Usage:
    from xlsx_textual.logger import get_logger

    logger = get_logger(__name__)
    logger.debug("Restarting iterator for %s", sheet_name)
"""

import logging
from pathlib import Path

from textual.logging import TextualHandler

LOGGER_NAME = "xlsx_textual"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return a logger in the package namespace.

    Args:
        name: Usually ``__name__`` of the calling module.
    """
    if name == LOGGER_NAME or name.startswith(f"{LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def setup_logging(level: str = "WARNING", log_file: str | Path | None = None) -> logging.Logger:
    """Configure the package logger.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ...).
        log_file: Optional file to append records to. Without it records are
            routed to the Textual devtools console.

    Returns:
        The configured package logger.
    """
    root = logging.getLogger(LOGGER_NAME)
    root.setLevel(level.upper())

    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    if log_file:
        handler: logging.Handler = logging.FileHandler(Path(log_file).expanduser(), encoding="utf-8")
    else:
        handler = TextualHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.propagate = False

    return root
