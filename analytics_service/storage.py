"""
Storage Backends

Persistence capabilities for the statistics document. The store only
depends on :class:`StorageBackend`; the adapter decides which concrete
variant (durable file, ephemeral memory, or a fallback chain) to use.
"""

import copy
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import CorruptStateError, PersistenceError

logger = logging.getLogger(__name__)


class StorageBackend(ABC):
    """Abstract persistence capability for a single JSON document."""

    @abstractmethod
    def read(self) -> Optional[Any]:
        """Read the persisted document.

        Returns:
            The parsed document, or None if nothing has been persisted yet

        Raises:
            CorruptStateError: If stored data exists but cannot be parsed
            PersistenceError: If the storage itself cannot be accessed
        """

    @abstractmethod
    def write(self, document: Dict[str, Any]) -> None:
        """Persist the document, replacing whatever was stored.

        Raises:
            PersistenceError: If the write fails
        """

    @property
    def description(self) -> str:
        return type(self).__name__


class JsonFileBackend(StorageBackend):
    """Durable backend storing the document as one pretty-printed JSON file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    @property
    def description(self) -> str:
        return f"file:{self.path}"

    def read(self) -> Optional[Any]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as exc:
            raise CorruptStateError(f"{self.path} is not valid UTF-8") from exc
        except OSError as exc:
            raise PersistenceError(f"Failed to read {self.path}: {exc}") from exc

        if not raw.strip():
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, RecursionError) as exc:
            raise CorruptStateError(f"{self.path} does not contain valid JSON: {exc}") from exc

    def write(self, document: Dict[str, Any]) -> None:
        serialized = json.dumps(document, indent=2, ensure_ascii=False)
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # Write to a sibling temp file, then swap it in atomically
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(serialized)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceError(f"Failed to write {self.path}: {exc}") from exc


class MemoryBackend(StorageBackend):
    """Ephemeral backend keeping the document in process memory."""

    def __init__(self, initial: Optional[Any] = None):
        self._document = copy.deepcopy(initial)

    @property
    def description(self) -> str:
        return "memory"

    def read(self) -> Optional[Any]:
        return copy.deepcopy(self._document)

    def write(self, document: Dict[str, Any]) -> None:
        self._document = copy.deepcopy(document)


class FallbackBackend(StorageBackend):
    """Chain a primary backend with a fallback.

    When the primary raises :class:`PersistenceError`, the chain logs a
    warning, switches permanently to the fallback, and retries the operation
    there. Corrupt data is not an access failure and is passed through.
    """

    def __init__(self, primary: StorageBackend, fallback: StorageBackend):
        self.primary = primary
        self.fallback = fallback
        self._degraded = False

    @property
    def degraded(self) -> bool:
        """Whether the chain has switched to the fallback backend."""
        return self._degraded

    @property
    def description(self) -> str:
        active = self.fallback if self._degraded else self.primary
        return f"fallback({active.description})"

    def _switch(self, exc: Exception) -> None:
        logger.warning(
            f"Storage backend {self.primary.description} unavailable ({exc}); "
            f"falling back to {self.fallback.description}"
        )
        self._degraded = True

    def read(self) -> Optional[Any]:
        if not self._degraded:
            try:
                return self.primary.read()
            except PersistenceError as exc:
                self._switch(exc)
        return self.fallback.read()

    def write(self, document: Dict[str, Any]) -> None:
        if not self._degraded:
            try:
                self.primary.write(document)
                return
            except PersistenceError as exc:
                self._switch(exc)
        self.fallback.write(document)
