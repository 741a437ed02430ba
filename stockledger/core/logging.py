"""
Logging configuration for the ledger service.

Module loggers are created with ``logging.getLogger(__name__)`` and propagate
to the ``stockledger`` logger configured here.
"""
import logging
import logging.handlers
import sys

from stockledger.core.config import settings

LOGGER_NAME = "stockledger"


def setup_logging(log_level: str | None = None, log_file: str | None = None) -> logging.Logger:
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    target = log_file if log_file is not None else settings.log_file
    if target:
        file_handler = logging.handlers.RotatingFileHandler(
            target,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger
