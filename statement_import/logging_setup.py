"""Package logging: silent by default, one stderr handler once the CLI asks.

Modules log through ``get_logger("statement_import.<module>")``. Output only
appears after :func:`configure_logging` installs the package handler.
"""

from __future__ import annotations

import logging
import sys
from typing import IO

from .config import resolve_log_level

PACKAGE_LOGGER = "statement_import"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_handler: logging.Handler | None = None


def resolve_level(level: int | str | None = None) -> int:
    """Turn ``level`` (or ``STATEMENT_IMPORT_LOG_LEVEL``) into a numeric level.

    Unknown names resolve to INFO.
    """

    if level is None:
        level = resolve_log_level()
    if level is None:
        return logging.INFO
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    return logging.getLevelNamesMapping().get(name, logging.INFO)


def configure_logging(level: int | str | None = None, *, stream: IO[str] = sys.stderr) -> None:
    """Attach the package handler; later calls only adjust the level."""

    global _handler
    pkg = logging.getLogger(PACKAGE_LOGGER)
    resolved = resolve_level(level)
    if _handler is None:
        for h in [h for h in pkg.handlers if isinstance(h, logging.NullHandler)]:
            pkg.removeHandler(h)
        _handler = logging.StreamHandler(stream)
        _handler.setFormatter(logging.Formatter(LOG_FORMAT))
        pkg.addHandler(_handler)
        pkg.propagate = False
    pkg.setLevel(resolved)


def get_logger(name: str) -> logging.Logger:
    pkg = logging.getLogger(PACKAGE_LOGGER)
    if _handler is None and not pkg.handlers:
        pkg.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "resolve_level"]
