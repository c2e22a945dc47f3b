"""Structured logging setup."""

from __future__ import annotations

import logging
import sys
from typing import IO

from pythonjsonlogger.json import JsonFormatter

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def resolve_level(level: str | None) -> int:
    """Map a textual level onto a ``logging`` constant, defaulting to INFO."""
    if not level:
        return logging.INFO
    return _LEVELS.get(level.strip().lower(), logging.INFO)


def configure_logging(level: str | None = "info", *, stream: IO[str] | None = None) -> None:
    """Install a single JSON handler on the root logger.

    Calling this again replaces the previously installed handler, so the level
    can be re-applied once configuration has been loaded.

    Args:
        level: Textual level (debug, info, warn, warning, error).
        stream: Output stream; defaults to stdout.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_filecollector", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JsonFormatter(_FORMAT, rename_fields={"levelname": "level"}))
    handler._filecollector = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    resolved = resolve_level(level)
    root.setLevel(resolved)
    logging.getLogger(__name__).info(
        "Logger initialized", extra={"log_level": logging.getLevelName(resolved)}
    )


__all__ = ["configure_logging", "resolve_level"]
