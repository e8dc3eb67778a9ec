"""Error taxonomy for the Note Manager.

Only ``DuplicateIdError`` is ever raised to callers of the store.  The
other errors are reported through the store's notification channel.
"""

from __future__ import annotations


class NotesError(Exception):
    """Base class for every Note Manager error."""


class DuplicateIdError(NotesError):
    """A note with the same id is already in the store."""

    def __init__(self, note_id: str) -> None:
        super().__init__(f'A note with id "{note_id}" already exists.')
        self.note_id = note_id


class NotFoundError(NotesError):
    """No note with the given id is in the store."""

    def __init__(self, note_id: str) -> None:
        super().__init__(f'No note found with id "{note_id}".')
        self.note_id = note_id


class SerializationError(NotesError):
    """Stored note data could not be parsed or validated."""


class BackendUnavailableError(NotesError):
    """Reading from or writing to the persistence backend failed."""
