"""Tests for the logging helpers."""

from __future__ import annotations

import logging

from readme2ci.logging import configure_logging, get_logger, stage_timer


def test_get_logger_uses_package_hierarchy() -> None:
    assert get_logger("pipeline").name == "readme2ci.pipeline"
    assert get_logger().name == "readme2ci"


def test_configure_logging_replaces_handlers() -> None:
    configure_logging()
    logger = configure_logging(verbose=True)

    assert len(logger.handlers) == 1
    assert logger.level == logging.DEBUG
    assert configure_logging().level == logging.WARNING


def test_stage_timer_logs_even_when_stage_raises(caplog) -> None:
    logger = logging.getLogger("timer-test")

    with caplog.at_level(logging.DEBUG, logger="timer-test"):
        try:
            with stage_timer(logger, "commands"):
                raise ValueError("boom")
        except ValueError:
            pass

    messages = [record.getMessage() for record in caplog.records]
    assert messages[0] == "Starting stage commands"
    assert messages[1].startswith("Stage commands ran for")
