import logging
import os

from ..constants import LOG_LEVEL_ENV

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def get_logger(name="pos_inventory", level=None):
    """
    Package logger with a single stderr handler. The level comes from
    `level`, else POS_LOG_LEVEL, else INFO; an unknown name falls back to INFO.
    """
    logger = logging.getLogger(name)
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV, "INFO")
    if isinstance(level, str):
        level = logging.getLevelName(level.strip().upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
    return logger
