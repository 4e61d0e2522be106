"""Diagnostic output for the package.

Everything logs to the ``opcda_next`` logger, which discards its records until
a writer is attached with :func:`set_log_writer` or :func:`debug`.
"""

import logging
import sys
from typing import Optional, TextIO

LOGGER_NAME = "opcda_next"
LOG_FORMAT = "OPC %(asctime)s %(message)s"

logger = logging.getLogger(LOGGER_NAME)
logger.addHandler(logging.NullHandler())

_sink: Optional[logging.Handler] = None


def set_log_writer(stream: Optional[TextIO], level: int = logging.INFO) -> None:
    """Send package log lines to ``stream``; ``None`` restores the discard sink."""
    global _sink
    if _sink is not None:
        logger.removeHandler(_sink)
        _sink = None
    if stream is None:
        logger.setLevel(logging.NOTSET)
        return
    _sink = logging.StreamHandler(stream)
    _sink.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(_sink)
    logger.setLevel(level)


def debug() -> None:
    """Print everything, including per-leaf browse progress, to stderr."""
    set_log_writer(sys.stderr, logging.DEBUG)
