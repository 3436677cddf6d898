"""
Analytics Service

Synchronous facade over the asynchronous analytics store for use from
Flask request threads.
"""

import asyncio
import logging
import threading
from typing import Any, Awaitable, Callable, Dict, Optional

from analytics_service.errors import AuthorizationError
from analytics_service.store import AnalyticsStore

from .auth import AdminAuthenticator

logger = logging.getLogger(__name__)


class AnalyticsService:
    """Owns the analytics store and the event loop it runs on.

    Request threads submit work to one dedicated event-loop thread, so all
    mutations from every thread land in the store's single FIFO queue.
    """

    def __init__(self, store: AnalyticsStore, authenticator: AdminAuthenticator):
        """Initialize the analytics service.

        Args:
            store: The analytics store to serve
            authenticator: Verifies admin secrets for resets
        """
        self.store = store
        self.authenticator = authenticator
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._state_lock = threading.Lock()
        self._submit_lock = threading.Lock()
        self._closing = False

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "AnalyticsService":
        """Start the store's event-loop thread."""
        with self._state_lock:
            if self._thread is not None:
                return self
            loop = asyncio.new_event_loop()
            ready = threading.Event()

            def run_loop():
                asyncio.set_event_loop(loop)
                loop.call_soon(ready.set)
                loop.run_forever()

            thread = threading.Thread(target=run_loop, name="analytics-store", daemon=True)
            thread.start()
            ready.wait()
            with self._submit_lock:
                self._loop = loop
                self._closing = False
            self._thread = thread
            logger.info(f"Analytics store started ({self.store.backend.description})")
        return self

    def close(self) -> None:
        """Stop the event-loop thread.

        New submissions are refused from here on; everything already submitted
        runs to completion and its caller gets the result before the loop stops.
        """
        with self._state_lock:
            if self._thread is None:
                return
            with self._submit_lock:
                self._closing = True
            loop, thread = self._loop, self._thread
            asyncio.run_coroutine_threadsafe(self._drain(), loop).result()
            loop.call_soon_threadsafe(loop.stop)
            thread.join()
            loop.close()
            with self._submit_lock:
                self._loop = None
            self._thread = None
            logger.info("Analytics store stopped")

    @staticmethod
    async def _drain() -> None:
        """Wait for every other task on the loop, then for worker-thread I/O."""
        current = asyncio.current_task()
        pending = [task for task in asyncio.all_tasks() if task is not current]
        if pending:
            logger.info(f"Waiting for {len(pending)} queued analytics operation(s)")
            await asyncio.gather(*pending, return_exceptions=True)
        await asyncio.get_running_loop().shutdown_default_executor()

    def __enter__(self) -> "AnalyticsService":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _submit(self, operation: Callable[[], Awaitable[Dict[str, Any]]]) -> Dict[str, Any]:
        # Checked and scheduled under one lock so close() drains every accepted call
        with self._submit_lock:
            loop = self._loop
            if loop is None or self._closing:
                raise RuntimeError("AnalyticsService is not running; call start() first")
            future = asyncio.run_coroutine_threadsafe(operation(), loop)
        return future.result()

    def get_data(self) -> Dict[str, Any]:
        """Get the current statistics document."""
        return self._submit(self.store.get_data)

    def record_visit(self, event: Any) -> Dict[str, Any]:
        """Record a page visit."""
        return self._submit(lambda: self.store.record_visit(event))

    def record_click(self, event: Any) -> Dict[str, Any]:
        """Record a click on a labelled element."""
        return self._submit(lambda: self.store.record_click(event))

    def clear(self, secret: Any) -> Dict[str, Any]:
        """Reset all statistics after verifying the admin secret.

        Raises:
            AuthorizationError: If the secret does not match; nothing is changed
        """
        if not self.authenticator.verify(secret):
            logger.warning("Rejected analytics reset with invalid admin secret")
            raise AuthorizationError("Unauthorized")
        document = self._submit(self.store.clear)
        logger.info("Analytics data cleared")
        return document
