"""Persistence backends for the Note Manager.

A backend stores one serialized note collection per key.  The store
reads and writes through the ``PersistenceBackend`` interface and never
knows which concrete backend the host application picked.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Optional

from pydantic import TypeAdapter, ValidationError

from .errors import BackendUnavailableError, SerializationError
from .metrics import PERSISTENCE_DURATION, PERSISTENCE_OPERATIONS
from .models import Note

if TYPE_CHECKING:
    from .config import Settings

logger = logging.getLogger(__name__)

_NOTES_ADAPTER = TypeAdapter(list[Note])


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def dump_notes(notes: Iterable[Note]) -> str:
    """Serialize notes to the persisted JSON array format."""
    return _NOTES_ADAPTER.dump_json(list(notes), indent=2, by_alias=True).decode(
        "utf-8"
    )


def parse_notes(data: str) -> list[Note]:
    """Parse a persisted JSON array into notes.

    Raises SerializationError if the text is not a JSON array of valid
    note records.
    """
    try:
        return _NOTES_ADAPTER.validate_json(data)
    except ValidationError as exc:
        raise SerializationError(f"Malformed note data: {exc}") from exc


# ---------------------------------------------------------------------------
# Backend interface
# ---------------------------------------------------------------------------


class PersistenceBackend(ABC):
    """Reads and writes serialized note collections by key."""

    name = "base"

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def lock(self, key: str) -> asyncio.Lock:
        """Lock serializing read-merge-write cycles on one key."""
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    async def persist(self, key: str, payload: str) -> None:
        """Store ``payload`` under ``key``. Raises BackendUnavailableError."""
        await self._timed("persist", self._persist(key, payload))

    async def retrieve(self, key: str) -> Optional[str]:
        """Return the payload stored under ``key`` or None if not found."""
        return await self._timed("retrieve", self._retrieve(key))

    def describe_key(self, key: str) -> str:
        """Human-readable location of ``key`` for notifications."""
        return f'"{key}"'

    async def _timed(self, operation: str, coro):
        start = time.perf_counter()
        try:
            result = await coro
        except BackendUnavailableError:
            PERSISTENCE_OPERATIONS.labels(
                backend=self.name, operation=operation, status="error"
            ).inc()
            raise
        PERSISTENCE_OPERATIONS.labels(
            backend=self.name, operation=operation, status="ok"
        ).inc()
        PERSISTENCE_DURATION.labels(backend=self.name, operation=operation).observe(
            time.perf_counter() - start
        )
        return result

    @abstractmethod
    async def _persist(self, key: str, payload: str) -> None: ...

    @abstractmethod
    async def _retrieve(self, key: str) -> Optional[str]: ...


# ---------------------------------------------------------------------------
# JSON file backend
# ---------------------------------------------------------------------------


class _WriteGuard:
    """Decides, under a lock, whether a pending file write may commit.

    The write runs in a worker thread. Once the caller gives up on it,
    the final rename is skipped so an abandoned save never lands.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cancelled = False
        self._committed = False

    def cancel(self) -> bool:
        """Call off the write. Returns False if it already committed."""
        with self._lock:
            if not self._committed:
                self._cancelled = True
            return not self._committed

    def commit(self, tmp_name: str, path: Path) -> bool:
        """Move the temp file into place unless the write was cancelled."""
        with self._lock:
            if self._cancelled:
                return False
            os.replace(tmp_name, path)
            self._committed = True
            return True


class JsonFileBackend(PersistenceBackend):
    """Stores each collection as a JSON file under a base directory."""

    name = "file"

    def __init__(self, base_dir: Path = Path("data")) -> None:
        super().__init__()
        self._base_dir = Path(base_dir)

    def path_for(self, key: str) -> Path:
        """Resolve a key to a file path. Absolute keys are used as-is."""
        path = Path(key)
        return path if path.is_absolute() else self._base_dir / path

    def describe_key(self, key: str) -> str:
        return f'file "{self.path_for(key)}"'

    async def _persist(self, key: str, payload: str) -> None:
        path = self.path_for(key)
        guard = _WriteGuard()
        worker = asyncio.ensure_future(
            asyncio.to_thread(self._write_atomic, path, payload, guard)
        )
        try:
            await asyncio.shield(worker)
        except asyncio.CancelledError:
            # Hold the caller (and its key lock) until the thread is done.
            if not guard.cancel():
                logger.warning("Write to %s committed before it was cancelled", path)
            try:
                await worker
            except OSError as exc:
                logger.warning("Cancelled write to %s failed: %s", path, exc)
            raise
        except OSError as exc:
            raise BackendUnavailableError(f"Cannot write {path}: {exc}") from exc
        logger.info("Wrote %d bytes to %s", len(payload), path)

    async def _retrieve(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        try:
            return await asyncio.to_thread(self._read, path)
        except OSError as exc:
            raise BackendUnavailableError(f"Cannot read {path}: {exc}") from exc

    @staticmethod
    def _read(path: Path) -> Optional[str]:
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    @staticmethod
    def _write_atomic(
        path: Path, payload: str, guard: Optional[_WriteGuard] = None
    ) -> None:
        """Write via a temp file in the same directory, then replace."""
        guard = guard or _WriteGuard()
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            if not guard.commit(tmp_name, path):
                Path(tmp_name).unlink(missing_ok=True)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_backend(settings: "Settings") -> PersistenceBackend:
    """Build the backend the host application configured."""
    if settings.storage_backend == "redis":
        from .redis_storage import RedisBackend

        return RedisBackend(settings.redis_url, prefix=settings.redis_prefix)
    return JsonFileBackend(settings.data_dir)
