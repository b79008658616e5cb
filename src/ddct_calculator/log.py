"""
Logging setup for the ddCt Calculator.
"""

import logging
from functools import lru_cache

from ddct_calculator.config import LOG_FORMAT
from ddct_calculator.settings import get_settings


@lru_cache()
def get_logger(name: str) -> logging.Logger:
    """
    Get configured logger instance.

    The level comes from Settings.log_level (DDCT_LOG_LEVEL).

    Args:
        name: Logger name

    Returns:
        Configured logger
    """
    settings = get_settings()
    logger = logging.getLogger(name)
    logger.setLevel(settings.log_level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger
