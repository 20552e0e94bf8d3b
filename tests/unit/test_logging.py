"""
Tests for logging configuration.
"""

import io
import logging

from datajpa.config import ConfigurationProperties
from datajpa.core.logging import (
    ColoredFormatter,
    configure_logging,
    configure_logging_from_config,
    get_logger,
)


class CustomTestFormatter(logging.Formatter):
    """Custom formatter for testing."""

    def format(self, record):
        return f"CUSTOM: {record.levelname} - {record.getMessage()}"


class RootLoggerIsolation:
    """Restore the root logger after each test."""

    def setup_method(self):
        root_logger = logging.getLogger()
        self._handlers = list(root_logger.handlers)
        self._level = root_logger.level
        self._sqlalchemy_level = logging.getLogger("sqlalchemy.engine").level

    def teardown_method(self):
        root_logger = logging.getLogger()
        for handler in list(root_logger.handlers):
            if handler not in self._handlers:
                root_logger.removeHandler(handler)
        root_logger.setLevel(self._level)
        logging.getLogger("sqlalchemy.engine").setLevel(self._sqlalchemy_level)


class TestConfigureLogging(RootLoggerIsolation):
    """Tests for configure_logging."""

    def test_default_logging(self):
        configure_logging(level="DEBUG")

        root_logger = logging.getLogger()
        assert root_logger.level == logging.DEBUG
        assert len(root_logger.handlers) == 1
        assert isinstance(root_logger.handlers[0].formatter, ColoredFormatter)

    def test_replaces_existing_handlers(self):
        configure_logging()
        configure_logging()

        assert len(logging.getLogger().handlers) == 1

    def test_custom_formatter(self):
        stream = io.StringIO()
        handler = logging.StreamHandler(stream)

        configure_logging(
            custom_formatter=CustomTestFormatter(), custom_handlers=[handler]
        )
        get_logger("tests").info("Test message")

        assert stream.getvalue().strip() == "CUSTOM: INFO - Test message"

    def test_custom_handlers_keep_their_formatter(self):
        handler = logging.StreamHandler(io.StringIO())
        formatter = logging.Formatter("%(message)s")
        handler.setFormatter(formatter)

        configure_logging(custom_handlers=[handler])

        assert logging.getLogger().handlers == [handler]
        assert handler.formatter is formatter

    def test_custom_handlers_count(self):
        handlers = [logging.StreamHandler(io.StringIO()) for _ in range(3)]

        configure_logging(custom_handlers=handlers)

        assert len(logging.getLogger().handlers) == 3

    def test_sqlalchemy_level(self):
        configure_logging(sqlalchemy_level="ERROR")

        assert logging.getLogger("sqlalchemy.engine").level == logging.ERROR

    def test_from_config(self, tmp_path):
        config_file = tmp_path / "application.yml"
        config_file.write_text("logging:\n  level: WARNING\n  sqlalchemy: INFO\n")

        configure_logging_from_config(ConfigurationProperties(str(config_file)))

        assert logging.getLogger().level == logging.WARNING
        assert logging.getLogger("sqlalchemy.engine").level == logging.INFO


class TestColoredFormatter:
    """Tests for ColoredFormatter."""

    def _record(self):
        return logging.LogRecord("datajpa", logging.ERROR, __file__, 1, "boom", None, None)

    def test_colors_level_name(self):
        formatter = ColoredFormatter("%(levelname)s %(message)s")
        output = formatter.format(self._record())

        assert output == "\033[31mERROR\033[0m boom"

    def test_without_colors(self):
        formatter = ColoredFormatter("%(levelname)s %(message)s", use_colors=False)
        assert formatter.format(self._record()) == "ERROR boom"

    def test_record_is_not_modified(self):
        record = self._record()
        ColoredFormatter("%(levelname)s").format(record)

        assert record.levelname == "ERROR"


class TestGetLogger:
    """Tests for get_logger namespacing."""

    def test_root_logger(self):
        assert get_logger().name == "datajpa"

    def test_child_logger(self):
        assert get_logger("data.repository").name == "datajpa.data.repository"

    def test_already_namespaced(self):
        assert get_logger("datajpa.config").name == "datajpa.config"
