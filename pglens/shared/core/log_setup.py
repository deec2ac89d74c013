"""Logging configuration.

The terminal belongs to the UI, so nothing is ever logged to stderr. With
debug enabled, records go to a rotating file in the config directory.
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE_NAME = "pglens.log"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(threadName)s | %(name)s | %(message)s"
MAX_LOG_BYTES = 2 * 1024 * 1024
LOG_BACKUP_COUNT = 3


def debug_requested(flag: bool = False) -> bool:
    return flag or os.environ.get("PGLENS_DEBUG", "").strip().lower() in ("1", "true", "yes")


def setup_logging(config_dir: Path, debug: bool = False) -> Path | None:
    """Configure the ``pglens`` logger.

    Returns the log file path when file logging was enabled. Safe to call
    more than once; previously installed handlers are replaced.
    """
    logger = logging.getLogger("pglens")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = False

    if not debug_requested(debug):
        logger.addHandler(logging.NullHandler())
        return None

    log_file = config_dir / LOG_FILE_NAME
    handler = RotatingFileHandler(
        filename=str(log_file),
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    logger.debug("Debug logging enabled (%s)", log_file)
    return log_file
