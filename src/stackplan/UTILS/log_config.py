"""
Logging setup for the command line tool.
"""
import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_handler: Optional[logging.Handler] = None


def setup_logging(verbose: bool = False) -> logging.Logger:
    """
    Configures the ``stackplan`` logger to write to stderr.

    Warnings only by default; ``verbose`` turns on debug output. Calling it
    again replaces the handler rather than stacking a second one, and binds
    the new one to whatever ``sys.stderr`` is at that point.

    :param verbose: Whether to log debug messages.
    :return: The package logger.
    """
    global _handler
    logger = logging.getLogger("stackplan")
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    if _handler is not None:
        logger.removeHandler(_handler)

    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(_handler)
    return logger
