"""
Logging setup for command line use.

Library modules only create ``logging.getLogger(__name__)`` loggers and
never install handlers. ``setup_logging`` is for entry points such as the
CLI: it attaches a console handler (and optionally a file handler) to the
``matrixprod`` logger. Calling it again replaces only the handlers it
installed itself, so handlers added by a host application stay in place.
"""

import logging
import sys
from typing import List, Optional


LOGGER_NAME = "matrixprod"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%H:%M:%S'

_installed: List[logging.Handler] = []


def _remove_installed(logger: logging.Logger) -> None:
    while _installed:
        handler = _installed.pop()
        logger.removeHandler(handler)
        handler.close()


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None,
                  stream=None) -> logging.Logger:
    """
    Configure the ``matrixprod`` logger.

    Args:
        level: Logging level for the package logger and its handlers
        log_file: Optional path; records are also written there
        stream: Console stream, ``sys.stderr`` when omitted

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    _remove_installed(logger)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler(stream if stream is not None else sys.stderr)
    console.setLevel(level)
    console.setFormatter(formatter)
    logger.addHandler(console)
    _installed.append(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
        _installed.append(file_handler)

    logger.debug("Logging configured at %s", logging.getLevelName(level))
    return logger
