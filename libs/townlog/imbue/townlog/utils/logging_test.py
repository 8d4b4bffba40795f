import pytest
from loguru import logger

from imbue.townlog.primitives import LogLevel
from imbue.townlog.utils.logging import log_span
from imbue.townlog.utils.logging import setup_logging


def test_setup_logging_filters_below_level(capsys: pytest.CaptureFixture[str]) -> None:
    setup_logging(LogLevel.WARNING)

    logger.info("quiet message")
    logger.warning("loud message")

    captured = capsys.readouterr()
    assert "quiet message" not in captured.err
    assert "loud message" in captured.err
    assert captured.out == ""


def test_log_span_logs_entry_and_timing() -> None:
    messages: list[str] = []
    handler_id = logger.add(messages.append, level="TRACE", format="{level}|{message}")
    try:
        with log_span("Reading {}", "town.log"):
            pass
    finally:
        logger.remove(handler_id)

    assert messages[0].startswith("DEBUG|Reading town.log")
    assert messages[1].startswith("TRACE|Reading town.log [done in")


def test_log_span_reports_failure_and_reraises() -> None:
    messages: list[str] = []
    handler_id = logger.add(messages.append, level="TRACE", format="{level}|{message}")
    try:
        with pytest.raises(RuntimeError):
            with log_span("Reading {}", "town.log"):
                raise RuntimeError("boom")
    finally:
        logger.remove(handler_id)

    assert "[failed after" in messages[-1]
