from __future__ import annotations

import logging
from pathlib import Path

from dexcaliburn.logging_config import (
    close_debug_logger,
    configure_console_logging,
    configure_debug_file_logger,
    verbosity_to_level,
)


def test_verbosity_levels() -> None:
    assert verbosity_to_level(0) == logging.WARNING
    assert verbosity_to_level(1) == logging.INFO
    assert verbosity_to_level(5) == logging.DEBUG


def test_console_logging_replaces_previous_handler() -> None:
    logger = configure_console_logging(1)
    configure_console_logging(2)
    consoles = [h for h in logger.handlers if getattr(h, "_dexcaliburn_console", False)]
    assert len(consoles) == 1
    assert logger.level == logging.DEBUG
    configure_console_logging(0)


def test_debug_file_logger_writes_and_closes(tmp_path: Path) -> None:
    path = tmp_path / "logs" / "capture.log"
    logger = configure_debug_file_logger("dexcaliburn.test_trace", path)
    logger.debug("Sending dex as '%s'", "memory-00")
    close_debug_logger(logger)
    assert "Sending dex as 'memory-00'" in path.read_text(encoding="utf-8")
    assert not logger.handlers


def test_debug_file_logger_does_not_lower_the_console_threshold(tmp_path: Path) -> None:
    logger = configure_console_logging(0)
    file_logger = configure_debug_file_logger("dexcaliburn", tmp_path / "run.log")
    try:
        assert file_logger is logger
        assert logger.level == logging.DEBUG
        consoles = [h for h in logger.handlers if getattr(h, "_dexcaliburn_console", False)]
        assert consoles[0].level == logging.WARNING
    finally:
        close_debug_logger(file_logger)
        configure_console_logging(0)
