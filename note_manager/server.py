"""
Note Manager MCP Server

Exposes tools for adding, listing, editing and deleting notes, undoing
and redoing add/delete operations, and saving/loading the collection via
the Model Context Protocol.  Runs on port 8001 with SSE transport.
"""

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any, Callable, Optional

from mcp.server.fastmcp import FastMCP

from .config import Settings
from .errors import DuplicateIdError
from .models import Note, Notification
from .storage import create_backend
from .store import Notifier, NotesStore, log_notification

logger = logging.getLogger("note_manager")


def _note_dict(note: Note) -> dict[str, Any]:
    return note.to_record()


class NoteTools:
    """Tool implementations bound to one explicitly constructed store.

    Each tool returns a JSON-ready dict.  Notifications raised by the
    store during a call are collected and returned as ``messages``.
    """

    def __init__(
        self, store_factory: Callable[[Notifier], NotesStore], collection_key: str
    ) -> None:
        self._messages: list[Notification] = []
        self.store: NotesStore = store_factory(self._collect)
        self.collection_key = collection_key
        self.loaded = False

    def _collect(self, notification: Notification) -> None:
        log_notification(notification)
        self._messages.append(notification)

    def _drain(self) -> list[str]:
        messages = [n.message for n in self._messages]
        self._messages.clear()
        return messages

    def add_note(self, title: str, content: str) -> dict:
        """Create a new note with a title and content.

        Use this tool when the user wants to write down, store, or remember
        a piece of information.  The add can be reverted with ``undo``.

        Args:
            title: Short descriptive title for the note.
            content: The full body / text of the note.

        Returns:
            Dictionary with the generated note_id and a confirmation message.
        """
        note = Note.create(title, content)
        try:
            self.store.add(note)
        except DuplicateIdError as exc:
            return {"error": str(exc), "messages": self._drain()}
        logger.info("Tool add_note invoked — id=%s", note.id)
        return {"note_id": note.id, "messages": self._drain()}

    def list_notes(self) -> dict:
        """List every note in store order.

        Returns:
            Dictionary with the notes and their count.
        """
        notes = self.store.list_notes()
        logger.info("Tool list_notes invoked — found=%d", len(notes))
        return {"count": len(notes), "notes": [_note_dict(n) for n in notes]}

    def get_note(self, note_id: str) -> dict:
        """Fetch a single note by its id.

        Args:
            note_id: Id returned by ``add_note`` or ``list_notes``.
        """
        note = self.store.get_by_id(note_id)
        if note is None:
            return {"error": f'No note found with id "{note_id}".'}
        return {"note": _note_dict(note)}

    def update_note(self, note_id: str, title: str, content: str) -> dict:
        """Replace the title and content of an existing note.

        Edits are not undoable; only adds and deletes are.
        """
        note = self.store.update(note_id, title, content)
        result: dict[str, Any] = {"messages": self._drain()}
        if note is None:
            result["error"] = f'No note found with id "{note_id}".'
        else:
            result["note"] = _note_dict(note)
        return result

    def delete_note(self, note_id: str) -> dict:
        """Delete a note by id.  The delete can be reverted with ``undo``."""
        note = self.store.delete_by_id(note_id)
        return {"deleted": note is not None, "messages": self._drain()}

    def undo(self) -> dict:
        """Revert the most recent add or delete."""
        action = self.store.undo()
        return {
            "action": action.kind if action else None,
            "messages": self._drain(),
        }

    def redo(self) -> dict:
        """Re-apply the most recently undone add or delete."""
        action = self.store.redo()
        return {
            "action": action.kind if action else None,
            "messages": self._drain(),
        }

    async def save_notes(self, key: Optional[str] = None) -> dict:
        """Save the notes to persistent storage.

        Args:
            key: Optional collection key; defaults to the configured one.
        """
        ok = await self.store.save(key or self.collection_key)
        return {"saved": ok, "messages": self._drain()}

    async def load_notes(self, key: Optional[str] = None) -> dict:
        """Load notes from persistent storage, skipping ids already present.

        Args:
            key: Optional collection key; defaults to the configured one.
        """
        ok = await self.store.load(key or self.collection_key)
        self.loaded = self.loaded or ok
        return {"loaded": ok, "count": len(self.store), "messages": self._drain()}

    def health_check(self) -> dict:
        """Check whether the Note Manager server is healthy.

        Returns:
            Dictionary with server status, note count, and timestamp.
        """
        logger.info("Tool health_check invoked")
        return {
            "status": "healthy",
            "server": "note-manager",
            "total_notes": len(self.store),
            "can_undo": self.store.can_undo,
            "can_redo": self.store.can_redo,
            "timestamp": datetime.now(UTC).isoformat(),
        }

    def register(self, mcp: FastMCP) -> FastMCP:
        """Register every tool on ``mcp``."""
        for tool in (
            self.add_note,
            self.list_notes,
            self.get_note,
            self.update_note,
            self.delete_note,
            self.undo,
            self.redo,
            self.save_notes,
            self.load_notes,
            self.health_check,
        ):
            mcp.tool()(tool)
        return mcp


def build_server(settings: Settings) -> tuple[FastMCP, NoteTools]:
    """Construct the store, its backend and the MCP server around them."""
    backend = create_backend(settings)
    tools = NoteTools(
        lambda notifier: NotesStore(
            backend,
            save_mode=settings.save_mode,
            io_timeout=settings.io_timeout,
            notifier=notifier,
        ),
        settings.collection_key,
    )

    @asynccontextmanager
    async def lifespan(_server: FastMCP):
        if settings.autoload and not tools.loaded:
            await tools.load_notes()
        yield

    mcp = FastMCP(
        "note-manager",
        host=settings.api_host,
        port=settings.mcp_port,
        lifespan=lifespan,
    )
    return tools.register(mcp), tools


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    from .config import settings

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    )
    mcp, _tools = build_server(settings)
    logger.info("Starting Note Manager MCP server on port %d ...", settings.mcp_port)
    mcp.run(transport="sse")
