"""Logging setup for harvest runs."""
import logging
from typing import Union

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "sdmx")


def configure_logging(level: Union[str, int] = logging.INFO) -> None:
    """Configure the root logger for a harvest process.

    Args:
        level: Level name ("DEBUG", "INFO", ...) or numeric level
    """
    if isinstance(level, str):
        level = level.upper()
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
