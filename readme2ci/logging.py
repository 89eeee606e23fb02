"""Logger hierarchy and handler setup for the CLI and service."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

_LOGGER_NAME = "readme2ci"
_CONSOLE_FORMAT = "[readme2ci] %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return ``readme2ci.<name>``, or the package logger when ``name`` is empty."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Attach a console handler and, optionally, a debug-level file sink.

    The console shows warnings (stage failures, skipped fences) unless
    ``verbose`` is set. The file sink always records stage timings.
    """
    console_level = logging.DEBUG if verbose else logging.WARNING
    logger = logging.getLogger(_LOGGER_NAME)
    logger.propagate = False

    # Repeated CLI invocations in one process must not stack handlers.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(console)
    logger.setLevel(console_level)

    if log_file is not None:
        sink = logging.FileHandler(log_file, encoding="utf-8")
        sink.setLevel(logging.DEBUG)
        sink.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(sink)
        logger.setLevel(logging.DEBUG)

    return logger


@contextmanager
def stage_timer(logger: logging.Logger, stage: str) -> Iterator[None]:
    """Log the start and wall-clock duration of one pipeline stage at DEBUG."""
    logger.debug("Starting stage %s", stage)
    started = time.perf_counter()
    try:
        yield
    finally:
        logger.debug("Stage %s ran for %.1f ms", stage, (time.perf_counter() - started) * 1000)


__all__ = ["configure_logging", "get_logger", "stage_timer"]
