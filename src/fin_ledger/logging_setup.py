"""Centralized logging configuration for the ``fin_ledger`` package.

- ``configure_logging(...)``: attach a single ``StreamHandler`` to the package
  root logger (``"fin_ledger"``). Called once by entrypoints such as the CLI.
- ``get_logger(name)``: acquire a logger by name, ensuring the package root
  logger has at least a ``NullHandler`` attached when not configured.

Library modules never attach their own handlers.
"""

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "fin_ledger"
_CONFIGURED = False

DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"


def _parse_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        level = level.strip().upper()
        if level.isdigit():
            return int(level)
        numeric = getattr(logging, level, None)
        if isinstance(numeric, int):
            return numeric
    env_val = os.getenv("FIN_LEDGER_LOG_LEVEL")
    if env_val:
        return _parse_level(env_val)
    return logging.WARNING


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Configure the package root logger exactly once.

    Args:
        level: Logging level as ``int`` or level name (e.g. ``"DEBUG"``). If
            None, ``FIN_LEDGER_LOG_LEVEL`` is used when set, else WARNING.
        fmt: Optional format string, defaults to ``DEFAULT_FORMAT``
        stream: Output stream for the handler (defaults to stderr)
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)

    # Remove NullHandlers so configured output is not swallowed
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    handler = logging.StreamHandler(stream)
    handler.setLevel(_parse_level(level))
    handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))

    logger.setLevel(_parse_level(level))
    logger.addHandler(handler)
    logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger by name, silent until ``configure_logging`` runs."""
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)
