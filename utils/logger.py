# utils/logger.py
import logging
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE = os.getenv("LOG_FILE", "bot.log")


def setup_logging(level: int = logging.INFO, log_to_file: bool = False, log_file: Optional[str] = None) -> None:
    """
    Configures the root logger: console output, plus a file when `log_to_file` is set.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_to_file:
        handlers.append(logging.FileHandler(log_file or LOG_FILE, encoding="utf-8"))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)

    # aiohttp and apscheduler are chatty at DEBUG
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("apscheduler.executors.default").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
