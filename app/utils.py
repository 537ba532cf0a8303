"""
Shared helpers.
"""
import logging

from app.core import config

_configured = False


def get_logger(name: str) -> logging.Logger:
    """
    Return a module logger, configuring the root handler on first use.

    Usage:
        from app.utils import get_logger

        log = get_logger(__name__)
        log.info("Loaded %d roles", len(roles))
    """
    global _configured
    if not _configured:
        logging.basicConfig(
            level=config.LOG_LEVEL,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )
        _configured = True
    return logging.getLogger(name)
