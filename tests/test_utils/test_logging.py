"""Tests for logging setup and formatters."""

import json
import logging
import sys

import pytest

from wexly.utils.logging import (
    ColoredFormatter,
    JSONFormatter,
    SessionLoggerAdapter,
    create_logger_with_context,
    setup_logging,
    setup_logging_from_config,
)


def _record(msg="hello", level=logging.INFO, **extra):
    record = logging.LogRecord("engine", level, __file__, 10, msg, (), None)
    record.__dict__.update(extra)
    return record


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


class TestJSONFormatter:
    def test_fields(self):
        data = json.loads(JSONFormatter().format(_record()))
        assert data["level"] == "INFO"
        assert data["logger"] == "engine"
        assert data["message"] == "hello"
        assert "extra" not in data

    def test_extra_fields(self):
        data = json.loads(JSONFormatter().format(_record(session_id="a1b2")))
        assert data["extra"] == {"session_id": "a1b2"}

    def test_exception(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = logging.LogRecord("engine", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
        data = json.loads(JSONFormatter().format(record))
        assert "ValueError: bad" in data["exception"]


class TestColoredFormatter:
    def test_level_coloured_and_restored(self):
        record = _record(level=logging.WARNING)
        text = ColoredFormatter("%(levelname)s %(message)s").format(record)
        assert text == "\033[33mWARNING\033[0m hello"
        assert record.levelname == "WARNING"


class TestSetupLogging:
    def test_json_console(self, restore_root_logger):
        setup_logging(level="debug", log_format="json")
        assert restore_root_logger.level == logging.DEBUG
        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)

    def test_text_colored(self, restore_root_logger):
        setup_logging(log_format="text")
        assert isinstance(restore_root_logger.handlers[0].formatter, ColoredFormatter)

    def test_file_output_is_json(self, restore_root_logger, tmp_path):
        log_file = tmp_path / "logs" / "wexly.log"
        setup_logging(log_format="text", log_file=str(log_file), console_enabled=False)

        logging.getLogger("engine").info("tick")
        for handler in restore_root_logger.handlers:
            handler.flush()

        line = log_file.read_text().strip().splitlines()[-1]
        assert json.loads(line)["message"] == "tick"

    def test_from_config_verbose(self, restore_root_logger):
        setup_logging_from_config({"logging": {"level": "WARNING", "format": "text"}}, verbose=True)
        assert restore_root_logger.level == logging.DEBUG


class TestSessionLoggerAdapter:
    def test_context_added(self, caplog):
        logger = create_logger_with_context("session", {"session_id": "a1b2"})
        assert isinstance(logger, SessionLoggerAdapter)

        with caplog.at_level(logging.INFO, logger="session"):
            logger.info("started", extra={"turn": 3})

        record = caplog.records[-1]
        assert record.session_id == "a1b2"
        assert record.turn == 3
