"""Tests for logging setup."""

import io
import logging
from logging.handlers import RotatingFileHandler
from unittest.mock import patch

import pytest

from byteside.logging_config import (
    LOG_FORMAT,
    PACKAGE_LOGGER,
    get_log_file_path,
    log_failure,
    parse_level,
    setup_logging,
)


@pytest.fixture(autouse=True)
def restore_package_logger():
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    handlers, level = list(package_logger.handlers), package_logger.level
    yield
    package_logger.handlers = handlers
    package_logger.setLevel(level)


class TestParseLevel:
    """Test parse_level."""

    @pytest.mark.parametrize(
        "level,expected",
        [("debug", logging.DEBUG), ("WARNING", logging.WARNING), (logging.ERROR, logging.ERROR)],
    )
    def test_known_levels(self, level, expected):
        assert parse_level(level) == expected

    def test_unknown_falls_back_to_info(self):
        assert parse_level("VERBOSE") == logging.INFO


class TestSetupLogging:
    """Test setup_logging."""

    def test_file_handler_rotates_under_log_dir(self, tmp_path):
        log_dir = tmp_path / "logs"
        with patch("byteside.logging_config.LOG_DIR", log_dir):
            package_logger = setup_logging(log_to_file=True, max_bytes=1024, backup_count=2)

        [handler] = package_logger.handlers
        assert isinstance(handler, RotatingFileHandler)
        assert handler.maxBytes == 1024
        assert handler.backupCount == 2
        assert handler.baseFilename == str(log_dir / "byteside.log")
        handler.close()

    def test_console_handler(self):
        stream = io.StringIO()
        setup_logging(
            level="debug", log_to_file=False, log_to_console=True, console_stream=stream
        )

        logging.getLogger("byteside.server.app").debug("hello console")

        assert "[DEBUG] byteside.server.app: hello console" in stream.getvalue()

    def test_no_destination_stays_silent(self):
        """Without file or console output nothing reaches the last-resort handler."""
        package_logger = setup_logging(log_to_file=False, log_to_console=False)

        assert [type(h) for h in package_logger.handlers] == [logging.NullHandler]
        assert package_logger.level == logging.INFO

    def test_second_call_replaces_handlers(self):
        setup_logging(log_to_file=False, log_to_console=True, console_stream=io.StringIO())
        package_logger = setup_logging(
            log_to_file=False, log_to_console=True, console_stream=io.StringIO()
        )

        assert len(package_logger.handlers) == 1


class TestLogFilePath:
    """Test get_log_file_path."""

    def test_creates_dir(self, tmp_path):
        log_dir = tmp_path / "logs"
        with patch("byteside.logging_config.LOG_DIR", log_dir):
            path = get_log_file_path()

        assert log_dir.is_dir()
        assert path == log_dir / "byteside.log"


class TestLogFailure:
    """Test log_failure."""

    def _capture(self, level):
        stream = io.StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger = logging.getLogger("byteside.test_log_failure")
        logger.handlers = [handler]
        logger.setLevel(level)
        logger.propagate = False
        return logger, stream

    def _raise(self):
        try:
            raise ValueError("boom")
        except ValueError as e:
            return e

    def test_one_line_outside_debug(self):
        logger, stream = self._capture(logging.INFO)

        log_failure(logger, self._raise(), "Dropping connection")

        output = stream.getvalue()
        assert "[WARNING]" in output
        assert "Dropping connection: boom (ValueError)" in output
        assert "Traceback" not in output

    def test_traceback_in_debug(self):
        logger, stream = self._capture(logging.DEBUG)

        log_failure(logger, self._raise(), "Dropping connection", level=logging.ERROR)

        output = stream.getvalue()
        assert "[ERROR]" in output
        assert "Traceback" in output

    def test_below_logger_level_is_dropped(self):
        logger, stream = self._capture(logging.INFO)

        log_failure(logger, ValueError("boom"), "Handler failed", level=logging.DEBUG)

        assert stream.getvalue() == ""
