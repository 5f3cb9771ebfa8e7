from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Union


LOGGER_NAME = "piiguard"
LOG_FILE_NAME = "piiguard.log"
DEFAULT_MAX_BYTES = 1_000_000
DEFAULT_BACKUP_COUNT = 5

_FILE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def get_logger(component: str = "") -> logging.Logger:
    return logging.getLogger(f"{LOGGER_NAME}.{component}" if component else LOGGER_NAME)


def resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return value


def setup_logging(
    log_dir: str = "logs",
    *,
    level: Union[int, str] = logging.INFO,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    console: bool = True,
) -> logging.Logger:
    """
    Attach a rotating text log (and optionally a console echo) to the package logger.

    Repeated calls do not stack handlers; the level is re-applied to the logger and to
    handlers added here, so a later call can raise or lower verbosity.
    """
    os.makedirs(log_dir, exist_ok=True)
    lvl = resolve_level(level)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(lvl)
    logger.propagate = False

    text_path = os.path.abspath(os.path.join(log_dir, LOG_FILE_NAME))
    file_handler = next(
        (h for h in logger.handlers if isinstance(h, RotatingFileHandler) and h.baseFilename == text_path),
        None,
    )
    if file_handler is None:
        file_handler = RotatingFileHandler(text_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(file_handler)
    file_handler.setLevel(lvl)

    consoles = [h for h in logger.handlers if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)]
    if console and not consoles:
        sh = logging.StreamHandler()
        sh.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        logger.addHandler(sh)
        consoles = [sh]
    elif not console:
        for h in consoles:
            logger.removeHandler(h)
        consoles = []
    for h in consoles:
        h.setLevel(lvl)

    return logger
