import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional
from . import settings

FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(
    name: Optional[str] = None,
    log_level: int | str | None = None,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Attaches the import run's handlers to a logger (the root logger by default):
    bare messages on stdout, timestamped records in a rotating log file.
    Level and file location come from settings unless given.
    """
    logger = logging.getLogger(name)
    log_level = log_level if log_level is not None else settings.LOG_LEVEL
    log_file = log_file or settings.LOG_FILE
    logger.setLevel(log_level)

    # Calling twice (e.g. one run_process per scheduled job) must not duplicate output.
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console_handler)

    log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=settings.LOG_MAX_BYTES,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
    logger.addHandler(file_handler)

    logging.getLogger("urllib3").setLevel(logging.WARNING)
    return logger
