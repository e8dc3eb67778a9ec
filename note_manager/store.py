"""In-memory notes store with single-step undo/redo.

The store owns the ordered note collection and two action stacks.
``add`` and ``delete_by_id`` record an action and clear the redo stack;
``undo`` and ``redo`` replay actions through the silent primitives so
that replay never records new actions.

Invalid operations are reported through the notifier and otherwise
ignored.  The only error raised to callers is DuplicateIdError from
``add``/``add_silently``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from .config import SaveMode
from .errors import (
    BackendUnavailableError,
    DuplicateIdError,
    NotesError,
    NotFoundError,
)
from .metrics import STORE_OPERATIONS
from .models import Action, AddNote, DeleteNote, Note, Notification
from .storage import PersistenceBackend, dump_notes, parse_notes

logger = logging.getLogger(__name__)

Notifier = Callable[[Notification], None]

DEFAULT_IO_TIMEOUT = 10.0  # seconds


def log_notification(notification: Notification) -> None:
    """Default notifier: write the notification to the log."""
    if notification.is_error:
        logger.warning("Error: %s", notification.message)
    else:
        logger.info("Operation Result: %s", notification.message)


class NotesStore:
    """Owns the note collection and its undo/redo history."""

    def __init__(
        self,
        backend: Optional[PersistenceBackend] = None,
        *,
        save_mode: SaveMode = SaveMode.MERGE,
        io_timeout: float = DEFAULT_IO_TIMEOUT,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self._backend = backend
        self._save_mode = SaveMode(save_mode)
        self._io_timeout = io_timeout
        self._notify = notifier or log_notification
        self._notes: list[Note] = []
        self._undo_stack: list[Action] = []
        self._redo_stack: list[Action] = []

    def __len__(self) -> int:
        return len(self._notes)

    def __contains__(self, note_id: object) -> bool:
        return self._index_of(note_id) is not None

    @property
    def backend(self) -> Optional[PersistenceBackend]:
        return self._backend

    @property
    def can_undo(self) -> bool:
        return bool(self._undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo_stack)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_id(self, note_id: str) -> Optional[Note]:
        """Return the note with ``note_id`` or None."""
        index = self._index_of(note_id)
        return None if index is None else self._notes[index]

    def list_notes(self) -> list[Note]:
        """Copies of all notes in store order. Edits go through ``update``."""
        return [note.model_copy() for note in self._notes]

    def listing(self) -> str:
        """Every note rendered with ``Note.describe``, blank-line separated."""
        return "\n\n".join(note.describe() for note in self._notes)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(self, note: Note) -> None:
        """Append a note and record it for undo.

        Raises DuplicateIdError if a note with the same id exists.
        """
        try:
            self.add_silently(note)
        except DuplicateIdError:
            STORE_OPERATIONS.labels(operation="add", status="error").inc()
            raise
        self._undo_stack.append(AddNote(note=note))
        self._redo_stack.clear()
        STORE_OPERATIONS.labels(operation="add", status="ok").inc()
        self._info(f'Note "{note.title}" added.')

    def add_silently(self, note: Note, position: Optional[int] = None) -> None:
        """Insert a note without touching the undo/redo stacks."""
        if self._index_of(note.id) is not None:
            raise DuplicateIdError(note.id)
        if position is None:
            self._notes.append(note)
        else:
            self._notes.insert(max(0, min(position, len(self._notes))), note)

    def delete_by_id(self, note_id: str) -> Optional[Note]:
        """Remove a note and record it for undo. Returns the removed note."""
        index = self._index_of(note_id)
        if index is None:
            STORE_OPERATIONS.labels(operation="delete", status="error").inc()
            self._error(NotFoundError(note_id))
            return None
        note = self._notes.pop(index)
        self._undo_stack.append(DeleteNote(note=note.model_copy(), position=index))
        self._redo_stack.clear()
        STORE_OPERATIONS.labels(operation="delete", status="ok").inc()
        self._info(f'Note "{note.title}" deleted.')
        return note

    def delete_silently(self, note_id: str) -> Optional[Note]:
        """Remove a note without touching the undo/redo stacks."""
        index = self._index_of(note_id)
        if index is None:
            return None
        return self._notes.pop(index)

    def update(self, note_id: str, title: str, content: str) -> Optional[Note]:
        """Edit a note in place. Edits are not recorded for undo."""
        note = self.get_by_id(note_id)
        if note is None:
            STORE_OPERATIONS.labels(operation="update", status="error").inc()
            self._error(NotFoundError(note_id))
            return None
        note.update(title, content)
        STORE_OPERATIONS.labels(operation="update", status="ok").inc()
        self._info(f'Note "{note.title}" updated.')
        return note

    # ------------------------------------------------------------------
    # Undo / redo
    # ------------------------------------------------------------------

    def undo(self) -> Optional[Action]:
        """Revert the most recent action. Returns it, or None if nothing to undo."""
        if not self._undo_stack:
            STORE_OPERATIONS.labels(operation="undo", status="error").inc()
            self._error(message="Nothing to undo.")
            return None
        action = self._undo_stack.pop()
        if isinstance(action, AddNote):
            applied = self.delete_silently(action.note.id) is not None
        else:
            applied = self._restore(action.note, action.position)
        self._redo_stack.append(action)
        self._report_replay("Undo", action, applied)
        return action

    def redo(self) -> Optional[Action]:
        """Re-apply the most recently undone action."""
        if not self._redo_stack:
            STORE_OPERATIONS.labels(operation="redo", status="error").inc()
            self._error(message="Nothing to redo.")
            return None
        action = self._redo_stack.pop()
        if isinstance(action, AddNote):
            applied = self._restore(action.note)
        else:
            applied = self.delete_silently(action.note.id) is not None
        self._undo_stack.append(action)
        self._report_replay("Redo", action, applied)
        return action

    def _restore(self, note: Note, position: Optional[int] = None) -> bool:
        try:
            self.add_silently(note, position)
        except DuplicateIdError:
            return False
        return True

    def _report_replay(self, verb: str, action: Action, applied: bool) -> None:
        operation = verb.lower()
        if applied:
            STORE_OPERATIONS.labels(operation=operation, status="ok").inc()
            self._info(f"{verb}: {action.kind}")
        else:
            STORE_OPERATIONS.labels(operation=operation, status="error").inc()
            self._error(
                message=(
                    f'{verb}: {action.kind} skipped, note "{action.note.id}" '
                    "is no longer in the expected state."
                )
            )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def load(self, key: str) -> bool:
        """Merge the stored collection under ``key`` into the store.

        Notes whose id is already present are skipped. Loaded notes are
        not recorded for undo. On failure the store is left unchanged.
        """
        try:
            backend = self._require_backend()
            data = await self._with_timeout(backend.retrieve(key))
            incoming = parse_notes(data) if data is not None else None
        except NotesError as exc:
            STORE_OPERATIONS.labels(operation="load", status="error").inc()
            self._error(exc)
            return False
        if incoming is None:
            STORE_OPERATIONS.labels(operation="load", status="error").inc()
            self._error(message=f"No notes found at {backend.describe_key(key)}.")
            return False

        added = 0
        for note in incoming:
            if note.id not in self:
                self._notes.append(note)
                added += 1
        STORE_OPERATIONS.labels(operation="load", status="ok").inc()
        self._info(
            f"Notes loaded from {backend.describe_key(key)} "
            f"({added} new, {len(incoming) - added} already present)."
        )
        return True

    async def save(self, key: str) -> bool:
        """Write the live notes under ``key``.

        In MERGE mode the stored collection is read first and combined
        with the live notes by id. The read-merge-write cycle holds the
        backend's lock for ``key``.
        """
        try:
            backend = self._require_backend()
            async with backend.lock(key):
                if self._save_mode is SaveMode.MERGE:
                    existing = await self._with_timeout(backend.retrieve(key))
                    stored = parse_notes(existing) if existing is not None else []
                    payload = dump_notes(self._merge_for_save(stored))
                else:
                    payload = dump_notes(self._notes)
                await self._with_timeout(backend.persist(key, payload))
        except NotesError as exc:
            STORE_OPERATIONS.labels(operation="save", status="error").inc()
            self._error(exc)
            return False

        STORE_OPERATIONS.labels(operation="save", status="ok").inc()
        self._info(f"Notes saved to {backend.describe_key(key)}.")
        return True

    def _merge_for_save(self, stored: list[Note]) -> list[Note]:
        """Stored order first with live versions swapped in, then new live notes."""
        live = {note.id: note for note in self._notes}
        merged: list[Note] = []
        seen: set[str] = set()
        for note in stored:
            if note.id in seen:
                continue
            seen.add(note.id)
            merged.append(live.get(note.id, note))
        merged.extend(note for note in self._notes if note.id not in seen)
        return merged

    def _require_backend(self) -> PersistenceBackend:
        if self._backend is None:
            raise BackendUnavailableError("No persistence backend configured.")
        return self._backend

    async def _with_timeout(self, coro):
        try:
            return await asyncio.wait_for(coro, timeout=self._io_timeout)
        except asyncio.TimeoutError as exc:
            raise BackendUnavailableError(
                f"Backend call timed out after {self._io_timeout}s"
            ) from exc

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _index_of(self, note_id: object) -> Optional[int]:
        for index, note in enumerate(self._notes):
            if note.id == note_id:
                return index
        return None

    def _info(self, message: str) -> None:
        self._notify(Notification(level="info", message=message))

    def _error(
        self, exc: Optional[NotesError] = None, message: Optional[str] = None
    ) -> None:
        self._notify(
            Notification(
                level="error",
                message=message or str(exc),
                error=type(exc).__name__ if exc is not None else None,
            )
        )
