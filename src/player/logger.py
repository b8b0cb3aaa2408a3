"""
Logging setup for the signage player.

Every module gets a named logger with a single stream handler. The level
comes from SIGNAGE_LOG_LEVEL (default INFO).
"""

import logging
import os
import sys


LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def setup_logger(name: str) -> logging.Logger:
    """
    Get a configured logger for a player module.

    Args:
        name: Logger name, usually __name__

    Returns:
        Logger with one stream handler attached
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False

    level_name = os.environ.get('SIGNAGE_LOG_LEVEL', 'INFO').upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    return logger
