# cashledger/core/logging_config.py
import logging

from cashledger.core.config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level=None):
    """Attach a single stream handler to the ``cashledger`` logger tree."""
    logger = logging.getLogger("cashledger")
    logger.setLevel((level or LOG_LEVEL).upper())
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    return logger
