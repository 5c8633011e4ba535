"""Application logging.

Everything logs through child loggers of one ``todosync`` logger, which
writes to a rotating file in the platform log directory and never to the
terminal (the CLI prints through rich). ``TODOSYNC_LOG_LEVEL`` overrides the
default DEBUG level.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

from platformdirs import user_log_dir

LOGGER_NAME = "todosync"
LOG_FILE_NAME = "todosync.log"
LEVEL_ENV = "TODOSYNC_LOG_LEVEL"

_ROTATE_BYTES = 5 * 1024 * 1024
_ROTATE_KEEP = 3
_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"

_logger: logging.Logger | None = None


def log_file_path() -> Path:
    return Path(user_log_dir(LOGGER_NAME)) / LOG_FILE_NAME


def _level_from_env() -> int:
    name = os.environ.get(LEVEL_ENV, "").strip().upper()
    level = logging.getLevelName(name) if name else logging.DEBUG
    return level if isinstance(level, int) else logging.DEBUG


def _configure() -> logging.Logger:
    global _logger

    path = log_file_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=_ROTATE_BYTES, backupCount=_ROTATE_KEEP, encoding="utf-8"
    )
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(_level_from_env())
    if not logger.handlers:
        logger.addHandler(handler)
    else:
        handler.close()
    logger.propagate = False

    _logger = logger
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the application logger, or a child of it.

    Args:
        name: Dotted suffix such as ``"sync.driver"``; the child logs through
            the application logger's file handler.
    """
    logger = _logger or _configure()
    return logger.getChild(name) if name else logger
