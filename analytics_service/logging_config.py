"""
Logging setup for the analytics server.

Flask request threads and the store's event-loop thread all log through one
queue; a single listener thread writes the records to stdout in order.
"""

import logging
import logging.handlers
import sys
from queue import Queue
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(threadName)s] %(filename)s:%(lineno)d - %(message)s"

# Third-party loggers held at WARNING outside debug mode
QUIET_LOGGERS = ("werkzeug", "urllib3", "requests", "asyncio")


class AccessLogFilter(logging.Filter):
    """Drop the development server's per-request access lines."""

    def filter(self, record: logging.LogRecord) -> bool:
        return not (record.name.startswith("werkzeug") and record.levelno < logging.WARNING)


class AnalyticsLoggingConfig:
    """Queue-based logging shared by every thread of the server."""

    def __init__(self):
        self._listener: Optional[logging.handlers.QueueListener] = None
        self._queue: Optional[Queue] = None

    @property
    def active(self) -> bool:
        return self._listener is not None

    def setup_logging(self, debug: bool = False) -> None:
        """
        Route all log records through a queue and start the writer thread.

        Calling this again replaces the previous listener.

        Args:
            debug: Log at DEBUG and keep access lines from the dev server
        """
        self.stop()
        self._queue = Queue()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        self._listener = logging.handlers.QueueListener(
            self._queue, console_handler, respect_handler_level=True
        )
        self._listener.start()

        queue_handler = logging.handlers.QueueHandler(self._queue)
        root_logger = logging.getLogger()
        root_logger.handlers.clear()
        root_logger.addHandler(queue_handler)
        root_logger.setLevel(logging.DEBUG if debug else logging.INFO)

        if not debug:
            queue_handler.addFilter(AccessLogFilter())
            for name in QUIET_LOGGERS:
                logging.getLogger(name).setLevel(logging.WARNING)

    def stop(self) -> None:
        """Flush queued records and stop the writer thread."""
        if self._listener:
            self._listener.stop()
            self._listener = None
        self._queue = None


# Global logging configuration instance
logging_config = AnalyticsLoggingConfig()


def setup_logging(debug: bool = False) -> None:
    """Set up queue-based logging for the whole process."""
    logging_config.setup_logging(debug)


def stop_logging() -> None:
    """Flush and stop the logging listener."""
    logging_config.stop()
