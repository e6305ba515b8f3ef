"""
Tests for secret-filtering logging.
"""

import io
import logging
import sys

from gitfoil.core.config import FoilConfig, LoggingConfig
from gitfoil.core.logging import (
    SecureLogFilter,
    configure_logging,
    get_secure_logger,
)


def _record(msg, *args):
    return logging.LogRecord("gitfoil.test", logging.INFO, __file__, 1, msg, args, None)



class TestSecureLogFilter:

    def test_password_redacted(self):
        record = _record("unlock with password=hunter2")
        SecureLogFilter().filter(record)
        assert "hunter2" not in record.getMessage()
        assert "[REDACTED]" in record.getMessage()

    def test_args_redacted(self):
        record = _record("derived %s", "a" * 64)
        SecureLogFilter().filter(record)
        assert "a" * 64 not in record.getMessage()

    def test_master_key_redacted(self):
        record = _record("master_key: 0011223344")
        SecureLogFilter().filter(record)
        assert "0011223344" not in record.getMessage()

    def test_ordinary_message_untouched(self):
        record = _record("Migrated key storage (%s)", "encrypt")
        assert SecureLogFilter().filter(record) is True
        assert record.getMessage() == "Migrated key storage (encrypt)"


class TestGetSecureLogger:

    def test_writes_to_given_stream(self):
        stream = io.StringIO()
        logger = get_secure_logger("gitfoil.test.stream", level="INFO", stream=stream)
        logger.info("token=abc123")
        output = stream.getvalue()
        assert "abc123" not in output
        assert "[REDACTED]" in output

    def test_existing_logger_returned_unchanged(self):
        first = get_secure_logger("gitfoil.test.reuse", stream=io.StringIO())
        second = get_secure_logger("gitfoil.test.reuse", level="DEBUG")
        assert first is second
        assert len(second.handlers) == 1

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "gitfoil.log"
        logger = get_secure_logger(
            "gitfoil.test.file", level="INFO", enable_console=False, log_file=log_file
        )
        logger.info("secret=swordfish")
        for handler in logger.handlers:
            handler.flush()
        content = log_file.read_text(encoding="utf-8")
        assert "swordfish" not in content
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()


class TestConfigureLogging:

    def test_console_defaults_to_stderr(self, root_logger):
        logger = configure_logging(FoilConfig())
        stream_handlers = [h for h in logger.handlers if isinstance(h, logging.StreamHandler)]
        assert stream_handlers
        assert all(h.stream is not sys.stdout for h in stream_handlers)

    def test_reconfigure_replaces_handlers(self, root_logger):
        configure_logging(FoilConfig(), stream=io.StringIO())
        logger = configure_logging(FoilConfig(), stream=io.StringIO())
        assert len(logger.handlers) == 1

    def test_level_from_config(self, root_logger):
        stream = io.StringIO()
        configure_logging(FoilConfig(logging=LoggingConfig(level="DEBUG")), stream=stream)
        logging.getLogger("gitfoil.keys").debug("Key unlocked")
        assert "Key unlocked" in stream.getvalue()
