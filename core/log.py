"""
Logging configuration for Assetfolio.
"""

import logging
from datetime import datetime

from core.config import settings


class ColorFormatter(logging.Formatter):
    LEVEL_COLORS = {
        logging.DEBUG: "\033[1;34m",
        logging.INFO: "\033[1;32m",
        logging.WARNING: "\033[1;33m",
        logging.ERROR: "\033[1;38;5;208m",
        logging.CRITICAL: "\033[1;31m",
    }
    RESET = "\033[0m"

    def format(self, record):
        color = self.LEVEL_COLORS.get(record.levelno, self.RESET)
        log_time = datetime.fromtimestamp(record.created).strftime("%d-%m-%Y %H:%M:%S.%f")
        s = (
            f"{self.RESET}[{log_time}] "
            f"{color}{record.levelname:<8}{self.RESET} | "
            f"Thread: {record.threadName:<12} | "
            f"Logger: {record.name:<10} | "
            f"Line: {record.lineno:<4} | "
            f"{color}{record.getMessage()}{self.RESET}"
        )
        if record.exc_info:
            s = f"{s}\n{self.formatException(record.exc_info)}"
        return s


class FileFormatter(logging.Formatter):
    def format(self, record):
        log_time = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        s = f"[{log_time}] {record.levelname:<8} | {record.threadName} | {record.name}:{record.lineno} | {record.getMessage()}"
        if record.exc_info:
            s = f"{s}\n{self.formatException(record.exc_info)}"
        return s


def get_logger(name: str = "assetfolio") -> logging.Logger:
    """Return a named logger with console (and optional file) handlers attached once."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(ColorFormatter())
        logger.addHandler(stream_handler)

        if settings.log_file:
            file_handler = logging.FileHandler(settings.log_file, delay=True)
            file_handler.setFormatter(FileFormatter())
            logger.addHandler(file_handler)

    logger.setLevel(settings.log_level.upper())
    logger.propagate = False
    return logger
