"""Unit tests for Logging configuration."""

import json
import logging

from config.settings import LoggingSettings
from tradesim.logging_config import (
    ColoredFormatter,
    CompactFormatter,
    JsonFormatter,
    LogFormat,
    LoggingConfig,
    LogLevel,
    configure_logging,
    get_context_logger,
)


def make_record(msg="hello %s", args=("world",), level=logging.INFO):
    return logging.LogRecord("tradesim.test", level, "test.py", 10, msg, args, None)


class TestLoggingConfig:
    def test_from_settings(self):
        config = LoggingConfig.from_settings(LoggingSettings(level="debug", format="json"))
        assert config.level == LogLevel.DEBUG
        assert config.format_type == LogFormat.JSON
        assert config.log_file is None


class TestFormatters:
    """Tests for custom formatters."""

    def test_json_formatter(self):
        record = make_record()
        record.session = "abc"

        data = json.loads(JsonFormatter().format(record))

        assert data["message"] == "hello world"
        assert data["level"] == "INFO"
        assert data["logger"] == "tradesim.test"
        assert data["extra"] == {"session": "abc"}

    def test_colored_formatter_restores_levelname(self):
        record = make_record()
        output = ColoredFormatter("%(levelname)s %(message)s").format(record)
        assert "\033[" in output
        assert record.levelname == "INFO"

    def test_colored_formatter_plain(self):
        output = ColoredFormatter("%(levelname)s %(message)s", colorize=False).format(make_record())
        assert output == "INFO hello world"

    def test_compact_formatter(self):
        output = CompactFormatter().format(make_record(level=logging.WARNING))
        assert output.endswith("W [tradesim.test] hello world")


class TestConfigureLogging:
    def test_file_handler_writes_json(self, tmp_path):
        log_file = tmp_path / "logs" / "engine.log"
        configure_logging(LoggingConfig(
            level=LogLevel.DEBUG,
            format_type=LogFormat.JSON,
            log_to_console=False,
            log_file=log_file,
        ))

        logging.getLogger("tradesim.file").debug("written")
        for handler in logging.getLogger().handlers:
            handler.flush()

        line = log_file.read_text().strip().splitlines()[-1]
        assert json.loads(line)["message"] == "written"

    def test_console_handler(self):
        """Should replace root handlers with a single stdout stream handler."""
        configure_logging(LoggingConfig(level=LogLevel.WARNING, log_to_console=True))
        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert [type(h) for h in root.handlers] == [logging.StreamHandler]
        assert isinstance(root.handlers[0].formatter, ColoredFormatter)

    def test_reconfigure_keeps_previous_config(self):
        configure_logging(LoggingConfig(level=LogLevel.ERROR, format_type=LogFormat.COMPACT))
        configure_logging()
        root = logging.getLogger()
        assert root.level == logging.ERROR
        assert isinstance(root.handlers[0].formatter, CompactFormatter)


class TestContextLogger:
    def test_appends_context(self, caplog):
        log = get_context_logger("tradesim.ctx", session="s1")
        with caplog.at_level(logging.INFO):
            log.info("Filled order")
        assert "Filled order | session=s1" in caplog.text

    def test_with_context(self, caplog):
        log = get_context_logger("tradesim.ctx", session="s1").with_context(order="o1")
        with caplog.at_level(logging.INFO):
            log.warning("Rejected")
        assert "Rejected | session=s1 order=o1" in caplog.text

    def test_no_context(self, caplog):
        with caplog.at_level(logging.INFO):
            get_context_logger("tradesim.ctx").info("plain")
        assert caplog.records[-1].getMessage() == "plain"
