"""
Analytics Store

Owns the single statistics document and serializes every read-modify-write
cycle through one FIFO queue.
"""

import asyncio
import copy
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from .coercion import format_timestamp
from .errors import CorruptStateError
from .models import DEFAULT_MAX_EVENTS
from .mutators import apply_clear, apply_click, apply_visit, click_label
from .normalizer import default_document, normalize
from .storage import StorageBackend

logger = logging.getLogger(__name__)

Document = Dict[str, Any]


def _log_orphaned_failure(task: asyncio.Future) -> None:
    """Report the failure of an operation whose caller was cancelled."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning(f"Analytics operation failed after its caller was cancelled: {exc}")


class AnalyticsStore:
    """Asynchronous store for the aggregated analytics document.

    Every operation, reads included, joins the same FIFO queue (an
    ``asyncio.Lock``), so each one observes the committed result of every
    operation queued before it. Storage I/O runs in a worker thread via
    ``asyncio.to_thread`` and is the only suspension point inside the queue.

    Once an operation has been queued it runs to completion even if the
    awaiting caller is cancelled, so a write that reached storage is never
    left out of the in-memory cache.

    The store must be used from a single event loop.
    """

    def __init__(self, backend: StorageBackend, max_events: int = DEFAULT_MAX_EVENTS):
        """Initialize the store.

        Args:
            backend: Persistence capability for the document
            max_events: Bound for the visit and click event logs
        """
        self.backend = backend
        self.max_events = max_events
        self._lock = asyncio.Lock()
        self._cache: Optional[Document] = None

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    async def _run_exclusive(self, operation: Callable[[], Awaitable[Document]]) -> Document:
        async def run() -> Document:
            async with self._lock:
                return await operation()

        task = asyncio.ensure_future(run())
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            # The operation keeps running; nobody is left to see its outcome
            task.add_done_callback(_log_orphaned_failure)
            raise

    # ------------------------------------------------------------------
    # Unlocked primitives (callers must hold the queue)
    # ------------------------------------------------------------------

    async def _load(self) -> Document:
        try:
            raw = await asyncio.to_thread(self.backend.read)
        except CorruptStateError as exc:
            logger.warning(f"Analytics state in {self.backend.description} is corrupt, resetting: {exc}")
            raw = None
        if raw is None:
            return await self._commit(default_document())
        document = normalize(raw, self.max_events)
        self._cache = document
        return copy.deepcopy(document)

    async def _commit(self, document: Any) -> Document:
        normalized = normalize(document, self.max_events)
        if not normalized["lastUpdated"]:
            normalized["lastUpdated"] = format_timestamp(datetime.now(timezone.utc))
        # Raises PersistenceError; the cache keeps its last committed value
        await asyncio.to_thread(self.backend.write, normalized)
        self._cache = normalized
        return copy.deepcopy(normalized)

    async def _mutate(self, mutator: Callable[[Document], Document]) -> Document:
        current = await self._load()
        return await self._commit(mutator(current))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def load(self) -> Document:
        """Read the persisted document, self-healing missing or corrupt state."""
        return await self._run_exclusive(self._load)

    async def commit(self, document: Any) -> Document:
        """Normalize and persist a document, returning the persisted value."""
        return await self._run_exclusive(lambda: self._commit(document))

    async def get_data(self) -> Document:
        """Return the current document; queued behind pending mutations."""
        return await self._run_exclusive(self._load)

    async def record_visit(self, event: Any) -> Document:
        """Record a page visit and return the updated document."""
        return await self._run_exclusive(
            lambda: self._mutate(lambda doc: apply_visit(doc, event, self.max_events))
        )

    async def record_click(self, event: Any) -> Document:
        """Record a click; a click without a usable label is not written."""
        if not click_label(event):
            return await self.get_data()
        return await self._run_exclusive(
            lambda: self._mutate(lambda doc: apply_click(doc, event, self.max_events))
        )

    async def clear(self) -> Document:
        """Replace the document with fresh defaults."""
        return await self._run_exclusive(lambda: self._commit(apply_clear()))

    def snapshot(self) -> Optional[Document]:
        """Return a copy of the last committed document without queueing.

        This may lag behind in-flight mutations and is None until the first
        load or commit.
        """
        return copy.deepcopy(self._cache)
