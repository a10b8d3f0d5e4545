"""
Unit tests for structured logging helpers.
"""

import logging

import pytest

from candle_signals.monitoring.logger import (
    NullLogger, SignalLogger,
    get_logger, resolve_logger, setup_logger,
)

from tests.helpers import RecordingLogger


class TestSignalLogger:

    def test_formats_keyword_context(self, caplog):
        logger = SignalLogger("candle_signals.test")
        logger.info("Candle closed", symbol="EURUSD", close=1.1)
        assert "Candle closed | symbol=EURUSD | close=1.1" in caplog.text

    def test_message_without_context(self, caplog):
        SignalLogger("candle_signals.test").warning("Plain message")
        assert caplog.records[-1].getMessage() == "Plain message"
        assert caplog.records[-1].levelno == logging.WARNING

    def test_error_with_traceback(self, caplog):
        logger = SignalLogger("candle_signals.test")
        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("Calculation failed", exc_info=True, step="rsi")

        record = caplog.records[-1]
        assert record.getMessage() == "Calculation failed | step=rsi"
        assert record.exc_info is not None

    def test_explicit_level(self):
        logger = SignalLogger("candle_signals.test.quiet", level=logging.ERROR)
        assert logger.logger.level == logging.ERROR

    def test_get_logger_caches(self):
        assert get_logger("candle_signals.cached") is get_logger("candle_signals.cached")


class TestResolveLogger:

    def test_injected_logger_wins(self):
        injected = RecordingLogger()
        assert resolve_logger(injected, debug=True) is injected

    def test_debug_mode_uses_package_logger(self):
        assert isinstance(resolve_logger(debug=True), SignalLogger)

    def test_default_discards(self, caplog):
        logger = resolve_logger()
        assert isinstance(logger, NullLogger)
        logger.error("ignored", exc_info=True, detail=1)
        assert caplog.records == []


class TestSetupLogger:

    @pytest.fixture
    def package_logger(self):
        logger = logging.getLogger("candle_signals")
        saved = list(logger.handlers)
        logger.handlers.clear()
        yield logger
        for handler in logger.handlers:
            handler.close()
        logger.handlers[:] = saved

    def test_console_only(self, package_logger):
        configured = setup_logger(level="warning")
        assert configured is package_logger
        assert configured.level == logging.WARNING
        assert len(configured.handlers) == 1

    def test_rotating_file(self, package_logger, tmp_path):
        log_file = tmp_path / "logs" / "signals.log"
        setup_logger(log_file=log_file, level=logging.INFO)

        get_logger("candle_signals.file_test").info("Written to file")
        for handler in package_logger.handlers:
            handler.flush()

        assert "Written to file" in log_file.read_text()

    def test_idempotent(self, package_logger):
        setup_logger()
        setup_logger()
        assert len(package_logger.handlers) == 1
