from __future__ import annotations

import logging
import sys
from datetime import datetime
from typing import Optional

ROOT_LOGGER = "adaptive_crawler"


class CrawlFormatter(logging.Formatter):
    """[ Tue Jan 06 05:32:41 AM 2026 ] : INFO : adaptive_crawler.core : message"""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%a %b %d %I:%M:%S %p %Y")
        message = f"[ {timestamp} ] : {record.levelname} : {record.name} : {record.getMessage()}"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


def setup_logger(
    name: str = ROOT_LOGGER,
    log_file: Optional[str] = None,
    level: int = logging.INFO,
) -> logging.Logger:
    """Attach console (and optional file) handlers to the package logger once."""
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if logger.handlers:
        return logger

    formatter = CrawlFormatter()
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
