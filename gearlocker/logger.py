import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logger(name: str, log_file: Optional[str] = None, level: str | int = logging.INFO) -> logging.Logger:
    """
    Configure and return the named logger.
    - Always logs to stderr.
    - When `log_file` is given, also writes to a rotating file (1 MB, 3 backups).
    - Safe to call more than once; handlers are only attached the first time.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    formatter = logging.Formatter(FORMAT)

    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    logger.addHandler(stream)

    if log_file:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        handler = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
