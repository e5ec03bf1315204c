"""Logging setup: one formatter shared by a stderr and a rotating file handler."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILENAME = "ideacanvas.log"
MAX_BYTES = 2 * 1024 * 1024
BACKUP_COUNT = 5

# Libraries that are chatty at DEBUG/INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")


def setup_logging(level: Union[str, int] = "INFO",
                  log_dir: Optional[Path] = None) -> logging.Logger:
    """Configure the root logger. Safe to call more than once."""
    if isinstance(level, str):
        numeric = logging.getLevelName(level.upper())
        if not isinstance(numeric, int):
            raise ValueError(f"unknown log level: {level!r}")
        level = numeric

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_ideacanvas", False):
            root.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console._ideacanvas = True
    root.addHandler(console)

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / LOG_FILENAME, maxBytes=MAX_BYTES,
            backupCount=BACKUP_COUNT, encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        file_handler._ideacanvas = True
        root.addHandler(file_handler)

    root.setLevel(level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return root
