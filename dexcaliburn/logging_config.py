"""Logging helpers for console output and per-run debug traces."""

from __future__ import annotations

import logging
from pathlib import Path

__all__ = [
    "verbosity_to_level",
    "configure_console_logging",
    "configure_debug_file_logger",
    "close_debug_logger",
]

_CONSOLE_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


def verbosity_to_level(verbosity: int) -> int:
    """Map a ``-v`` count onto a logging level.

    ``0`` keeps warnings only, ``1`` adds the capture and hook summaries and
    ``2`` or more enables per-invocation traces.
    """

    if verbosity <= 0:
        return logging.WARNING
    if verbosity == 1:
        return logging.INFO
    return logging.DEBUG


def configure_console_logging(verbosity: int = 0) -> logging.Logger:
    """Install a stream handler on the ``dexcaliburn`` logger."""

    level = verbosity_to_level(verbosity)
    logger = logging.getLogger("dexcaliburn")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        if getattr(handler, "_dexcaliburn_console", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler._dexcaliburn_console = True  # type: ignore[attr-defined]
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT, "%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)
    return logger


def configure_debug_file_logger(
    name: str,
    path: Path,
    *,
    level: int = logging.DEBUG,
    formatter: logging.Formatter | None = None,
) -> logging.Logger:
    """Return a logger writing debug traces to ``path``.

    Any previously configured debug handlers on ``name`` are removed so repeated
    captures replace earlier traces instead of appending to them.  The file is
    opened in text mode with UTF-8 encoding.  The logger level is only ever
    lowered, and the file handler carries ``level`` itself, so console
    handlers keep their own threshold.
    """

    path.parent.mkdir(parents=True, exist_ok=True)
    logger = logging.getLogger(name)
    logger.setLevel(min(logger.level, level) if logger.level else level)

    close_debug_logger(logger)

    handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    handler._dexcaliburn_debug_dump = True  # type: ignore[attr-defined]
    handler.setLevel(level)
    if formatter is None:
        formatter = logging.Formatter(_CONSOLE_FORMAT)
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    return logger


def close_debug_logger(logger: logging.Logger) -> None:
    """Tear down debug handlers installed by :func:`configure_debug_file_logger`."""

    for handler in list(logger.handlers):
        if getattr(handler, "_dexcaliburn_debug_dump", False):
            logger.removeHandler(handler)
            try:
                handler.close()
            except OSError:  # pragma: no cover - filesystem failure
                pass
