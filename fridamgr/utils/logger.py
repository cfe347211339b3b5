"""
Logging for frida-mgr.

Library code only ever calls :func:`get_logger`; nothing is printed until
the CLI calls :func:`setup_logging` with the number of ``-v`` flags it was
given. Retries and source degradations log at WARNING, refresh progress at
INFO, per-record skips and cache hits at DEBUG.
"""

from __future__ import annotations

import sys
import logging
import threading
from typing import Dict, IO, Optional

from fridamgr.constants import (
    LOG_DATE_FORMAT,
    LOG_DEFAULT_FORMAT,
    LOG_VERBOSE_FORMAT,
)
from fridamgr.utils.console import color_enabled

ROOT_LOGGER_NAME = "fridamgr"

_LEVEL_COLOURS: Dict[int, str] = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[35m",
}
_RESET = "\033[0m"

_lock = threading.Lock()


class LevelColourFormatter(logging.Formatter):
    """Formatter that wraps the level name in an ANSI colour.

    Colouring is decided once, when the formatter is built, and applied to a
    copy of each record so other handlers keep the plain level name.
    """

    def __init__(self, fmt: str, *, datefmt: Optional[str] = None, colour: bool = False) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.colour = colour

    def format(self, record: logging.LogRecord) -> str:
        code = _LEVEL_COLOURS.get(record.levelno) if self.colour else None
        if code:
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = f"{code}{record.levelname}{_RESET}"
        return super().format(record)


def level_for_verbosity(verbosity: int) -> int:
    """Map a ``-v`` count to a level: 0 WARNING, 1 INFO, 2+ DEBUG."""
    if verbosity <= 0:
        return logging.WARNING
    if verbosity == 1:
        return logging.INFO
    return logging.DEBUG


def setup_logging(verbosity: int = 0, *, stream: Optional[IO[str]] = None) -> logging.Logger:
    """Attach a single stream handler to the ``fridamgr`` logger.

    Calling it again replaces the previous handler. At ``-vv`` and above the
    format adds timestamps and logger names.

    Args:
        verbosity: Number of ``-v`` flags.
        stream: Destination; ``sys.stderr`` by default.

    Returns:
        The configured ``fridamgr`` logger.
    """
    level = level_for_verbosity(verbosity)
    target = stream if stream is not None else sys.stderr
    formatter = LevelColourFormatter(
        LOG_VERBOSE_FORMAT if verbosity >= 2 else LOG_DEFAULT_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        colour=color_enabled(target),
    )

    handler = logging.StreamHandler(target)
    handler.setFormatter(formatter)

    with _lock:
        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.handlers.clear()
        root.addHandler(handler)
        root.setLevel(level)
        root.propagate = False
    return root


def reset_logging() -> None:
    """Remove handlers installed by :func:`setup_logging` and restore propagation."""
    with _lock:
        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.handlers.clear()
        root.addHandler(logging.NullHandler())
        root.setLevel(logging.NOTSET)
        root.propagate = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return ``fridamgr`` or a child of it.

    ``get_logger("resolver")`` and ``get_logger("fridamgr.resolver")`` name
    the same logger.
    """
    if not name or name == ROOT_LOGGER_NAME:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


# Silent until the application configures logging.
logging.getLogger(ROOT_LOGGER_NAME).addHandler(logging.NullHandler())
