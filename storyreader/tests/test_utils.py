"""
Unit tests for logging utilities.
"""

import logging

import pytest

from storyreader.utils.logger import VERBOSE, LogLevelContext, get_logger, setup_logging


class TestLogger:
    """Test the logging utilities"""

    def test_get_logger(self):
        """Test that get_logger returns a logger instance"""
        logger = get_logger("test")
        assert isinstance(logger, logging.Logger)
        assert logger.name == "test"

    def test_setup_logging(self):
        """Test that setup_logging configures logging correctly"""
        try:
            setup_logging(level="INFO", enable_colors=False)
        except Exception as e:
            pytest.fail(f"setup_logging raised an exception: {e}")
        assert logging.getLogger().level == logging.INFO

    def test_verbose_level(self):
        """VERBOSE sits between DEBUG and INFO"""
        assert logging.DEBUG < VERBOSE < logging.INFO
        assert logging.getLevelName(VERBOSE) == "VERBOSE"

    def test_verbose_logging(self, caplog):
        logger = get_logger("test_verbose")
        with caplog.at_level(VERBOSE, logger="test_verbose"):
            logger.log(VERBOSE, "session moved")
        assert "session moved" in caplog.text

    def test_setup_logging_with_file(self, tmp_path):
        log_file = tmp_path / "logs" / "reader.log"
        setup_logging(level="DEBUG", log_file=str(log_file), enable_colors=False)
        get_logger("test_file").debug("written to file")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "written to file" in log_file.read_text()
        setup_logging(level="INFO", enable_colors=False)

    def test_log_level_context(self):
        setup_logging(level="INFO", enable_colors=False)
        with LogLevelContext("DEBUG"):
            assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger().level == logging.INFO

    def test_logger_class_not_patched(self):
        assert not hasattr(logging.Logger, "verbose")
