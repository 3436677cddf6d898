"""
Tests for the queue-based logging setup.
"""

import logging
import logging.handlers

import pytest

from analytics_service.logging_config import AccessLogFilter, AnalyticsLoggingConfig


class TestAnalyticsLoggingConfig:
    """Test logging setup and teardown."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        werkzeug_level = logging.getLogger("werkzeug").level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)
        logging.getLogger("werkzeug").setLevel(werkzeug_level)

    def test_setup_installs_queue_handler(self):
        config = AnalyticsLoggingConfig()
        try:
            config.setup_logging(debug=False)
            root = logging.getLogger()
            assert config.active
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0], logging.handlers.QueueHandler)
            assert root.level == logging.INFO
            assert logging.getLogger("werkzeug").level == logging.WARNING
        finally:
            config.stop()
        assert not config.active

    def test_debug_mode(self):
        config = AnalyticsLoggingConfig()
        try:
            config.setup_logging(debug=True)
            assert logging.getLogger().level == logging.DEBUG
            assert not logging.getLogger().handlers[0].filters
        finally:
            config.stop()

    def test_repeated_setup_replaces_listener(self):
        config = AnalyticsLoggingConfig()
        try:
            config.setup_logging()
            first = config._listener
            config.setup_logging()
            assert config._listener is not first
            assert len(logging.getLogger().handlers) == 1
        finally:
            config.stop()


class TestAccessLogFilter:
    """Test muting of development server access lines."""

    def make_record(self, name, level):
        return logging.LogRecord(name, level, __file__, 1, "message", None, None)

    def test_filter(self):
        log_filter = AccessLogFilter()
        assert not log_filter.filter(self.make_record("werkzeug", logging.INFO))
        assert log_filter.filter(self.make_record("werkzeug", logging.ERROR))
        assert log_filter.filter(self.make_record("app.analytics.routes", logging.INFO))
