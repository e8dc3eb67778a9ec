"""FastAPI application for the Note Manager.

Endpoints:
  GET    /notes             — List all notes in store order
  POST   /notes             — Create a note
  GET    /notes/{note_id}   — Fetch one note
  PUT    /notes/{note_id}   — Edit a note's title and content
  DELETE /notes/{note_id}   — Delete a note
  POST   /undo              — Undo the last add/delete
  POST   /redo              — Redo the last undone add/delete
  POST   /save              — Save notes to the configured backend
  POST   /load              — Load notes from the configured backend
  GET    /notifications     — Recent store notifications
  GET    /health            — Store and backend status
  GET    /metrics           — Prometheus metrics
"""

from __future__ import annotations

import logging
import time
from collections import deque
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel
from starlette.middleware.base import BaseHTTPMiddleware

from note_manager.config import Settings
from note_manager.errors import DuplicateIdError
from note_manager.metrics import HTTP_DURATION, HTTP_REQUESTS
from note_manager.models import Note, Notification
from note_manager.redis_storage import RedisBackend
from note_manager.storage import create_backend
from note_manager.store import NotesStore, log_notification

logger = logging.getLogger(__name__)

MAX_NOTIFICATIONS = 50

# Endpoints excluded from HTTP metrics to avoid cardinality explosion
_METRICS_EXCLUDE = {"/metrics", "/openapi.json", "/docs", "/redoc"}


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record HTTP request count and duration for Prometheus."""

    async def dispatch(self, request: Request, call_next):
        """Wrap each request with timing and counting."""
        path = request.url.path
        if path in _METRICS_EXCLUDE:
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start

        # Label by route template so per-note paths share one series
        endpoint = getattr(request.scope.get("route"), "path", path)
        HTTP_REQUESTS.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()
        HTTP_DURATION.labels(endpoint=endpoint).observe(elapsed)
        return response


class RecentNotifications:
    """Notifier that logs and keeps the most recent notifications."""

    def __init__(self, maxlen: int = MAX_NOTIFICATIONS) -> None:
        self._items: deque[Notification] = deque(maxlen=maxlen)

    def __call__(self, notification: Notification) -> None:
        log_notification(notification)
        self._items.append(notification)

    def recent(self) -> list[Notification]:
        return list(self._items)

    def last_error(self) -> Optional[str]:
        for item in reversed(self._items):
            if item.is_error:
                return item.message
        return None


# --- Request / Response models ---


class NoteRequest(BaseModel):
    """Create/update request body."""

    title: str
    content: str


class PersistRequest(BaseModel):
    """Save/load request body; ``key`` defaults to the configured collection."""

    key: Optional[str] = None


class ActionResponse(BaseModel):
    """Undo/redo response body."""

    action: Optional[str]
    count: int
    can_undo: bool
    can_redo: bool


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the app. The store is created in the lifespan and kept on app.state."""
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup: build backend + store, autoload the collection."""
        backend = create_backend(settings)
        if isinstance(backend, RedisBackend):
            logger.info("Connecting to Redis storage...")
            await backend.connect()
        notifications = RecentNotifications()
        store = NotesStore(
            backend,
            save_mode=settings.save_mode,
            io_timeout=settings.io_timeout,
            notifier=notifications,
        )
        app.state.store = store
        app.state.notifications = notifications
        if settings.autoload:
            await store.load(settings.collection_key)
        logger.info("Note service ready — %d notes loaded", len(store))
        yield
        if isinstance(backend, RedisBackend):
            await backend.close()
        logger.info("Note service shut down.")

    app = FastAPI(title="Note Manager", version="1.0.0", lifespan=lifespan)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _store(request: Request) -> NotesStore:
        return request.app.state.store

    def _get_or_404(store: NotesStore, note_id: str) -> Note:
        note = store.get_by_id(note_id)
        if note is None:
            raise HTTPException(status_code=404, detail=f"Note {note_id} not found")
        return note

    # --- Notes ---

    @app.get("/notes")
    async def list_notes(request: Request) -> list[dict[str, Any]]:
        """List all notes in store order."""
        return [n.to_record() for n in _store(request).list_notes()]

    @app.post("/notes", status_code=201)
    async def create_note(body: NoteRequest, request: Request) -> dict[str, Any]:
        """Create a note; the add is recorded for undo."""
        note = Note.create(body.title, body.content)
        try:
            _store(request).add(note)
        except DuplicateIdError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return note.to_record()

    @app.get("/notes/{note_id}")
    async def get_note(note_id: str, request: Request) -> dict[str, Any]:
        """Fetch one note."""
        return _get_or_404(_store(request), note_id).to_record()

    @app.put("/notes/{note_id}")
    async def update_note(
        note_id: str, body: NoteRequest, request: Request
    ) -> dict[str, Any]:
        """Edit a note's title and content."""
        store = _store(request)
        _get_or_404(store, note_id)
        return store.update(note_id, body.title, body.content).to_record()

    @app.delete("/notes/{note_id}")
    async def delete_note(note_id: str, request: Request) -> dict[str, Any]:
        """Delete a note; the delete is recorded for undo."""
        store = _store(request)
        _get_or_404(store, note_id)
        note = store.delete_by_id(note_id)
        return {"deleted": note.id}

    # --- Undo / redo ---

    def _action_response(store: NotesStore, action) -> ActionResponse:
        return ActionResponse(
            action=action.kind if action else None,
            count=len(store),
            can_undo=store.can_undo,
            can_redo=store.can_redo,
        )

    @app.post("/undo", response_model=ActionResponse)
    async def undo(request: Request) -> ActionResponse:
        """Undo the last add/delete. ``action`` is null if there was nothing to undo."""
        store = _store(request)
        return _action_response(store, store.undo())

    @app.post("/redo", response_model=ActionResponse)
    async def redo(request: Request) -> ActionResponse:
        """Redo the last undone add/delete."""
        store = _store(request)
        return _action_response(store, store.redo())

    # --- Persistence ---

    @app.post("/save")
    async def save(request: Request, body: Optional[PersistRequest] = None) -> dict:
        """Save notes; 503 if the backend write failed."""
        key = (body.key if body else None) or settings.collection_key
        if not await _store(request).save(key):
            detail = request.app.state.notifications.last_error()
            raise HTTPException(status_code=503, detail=detail or "Save failed")
        return {"saved": True, "key": key}

    @app.post("/load")
    async def load(request: Request, body: Optional[PersistRequest] = None) -> dict:
        """Load notes additively; 503 if nothing could be loaded."""
        key = (body.key if body else None) or settings.collection_key
        store = _store(request)
        if not await store.load(key):
            detail = request.app.state.notifications.last_error()
            raise HTTPException(status_code=503, detail=detail or "Load failed")
        return {"loaded": True, "key": key, "count": len(store)}

    # --- Status ---

    @app.get("/notifications")
    async def notifications(request: Request) -> list[dict[str, Any]]:
        """Most recent store notifications, oldest first."""
        return [n.model_dump() for n in request.app.state.notifications.recent()]

    @app.get("/health")
    async def health(request: Request) -> dict[str, Any]:
        """Store and backend status."""
        store = _store(request)
        backend = store.backend
        backend_status = "healthy"
        if isinstance(backend, RedisBackend) and not backend.available:
            backend_status = "unavailable"
        return {
            "service": "healthy",
            "backend": settings.storage_backend,
            "backend_status": backend_status,
            "collection_key": settings.collection_key,
            "total_notes": len(store),
            "can_undo": store.can_undo,
            "can_redo": store.can_redo,
        }

    @app.get("/metrics")
    async def metrics() -> Response:
        """Prometheus metrics endpoint."""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


if __name__ == "__main__":
    import uvicorn

    from note_manager.config import settings as env_settings

    logging.basicConfig(
        level=env_settings.log_level,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    )
    uvicorn.run(
        create_app(env_settings), host=env_settings.api_host, port=env_settings.api_port
    )
