"""Logging setup shared by the fetchers, scorers, services and CLI."""

import logging
import os
from pathlib import Path

_FORMAT = "%(asctime)s | %(levelname)-8s | %(module)s.%(funcName)s | %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logger(name: str = "dashboard", log_file: str = "output/dashboard.log") -> logging.Logger:
    """
    Configure and return the dashboard logger (console + file).

    The level comes from ``LOG_LEVEL`` (default ``INFO``) and the file path
    can be redirected with ``LOG_FILE``.

    Args:
        name (str): The name of the logger.
        log_file (str): The path to the log file.

    Returns:
        logging.Logger: The configured logger instance.
    """
    logger = logging.getLogger(name)

    # setup may run more than once (CLI + tests importing modules)
    if logger.hasHandlers():
        return logger

    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logger.setLevel(getattr(logging, level, logging.INFO))

    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)

    log_path = Path(os.getenv("LOG_FILE", log_file))
    log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


logger = setup_logger()
