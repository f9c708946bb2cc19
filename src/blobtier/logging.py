"""Logging setup for blobtier.

Modules log through ``logging.getLogger(__name__)``. ``configure_logging``
attaches two handlers to the ``blobtier`` logger:

- a rich console handler at the requested level (INFO by default), showing
  summaries and per-object progress;
- a durable file handler at DEBUG, which also carries per-record detail.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "blobtier"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def log_file_path(log_dir: str | Path, now: datetime | None = None) -> Path:
    """Daily log file path inside ``log_dir``."""
    now = now or datetime.now(timezone.utc)
    return Path(log_dir) / f"blobtier_{now.strftime('%Y%m%d')}.log"


def configure_logging(
    level: str | int = "INFO",
    log_dir: str | Path | None = None,
    console: Console | None = None,
) -> Path | None:
    """Configure console and file logging.

    Calling it again replaces the handlers installed by a previous call.

    Args:
        level: Console log level.
        log_dir: Directory for the DEBUG log file; no file when None.
        console: Console for the rich handler (stderr by default).

    Returns:
        Path of the log file, if one was configured.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    console_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    if log_dir is None:
        return None

    path = log_file_path(log_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(path, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
    logger.addHandler(file_handler)
    return path
