"""Thin HTTP client for the Note Manager FastAPI backend.

All functions return parsed JSON (dicts/lists) or raise on failure.
Uses requests (synchronous) since Streamlit reruns are synchronous.
"""

from __future__ import annotations

import os
from typing import Any, Optional

import requests

BASE_URL = os.getenv("NOTES_API_URL", "http://localhost:8000")
_TIMEOUT = 10  # seconds


def list_notes() -> list[dict[str, Any]]:
    """GET /notes — all notes in store order."""
    resp = requests.get(f"{BASE_URL}/notes", timeout=_TIMEOUT)
    resp.raise_for_status()
    return resp.json()


def create_note(title: str, content: str) -> dict[str, Any]:
    """POST /notes — create a note."""
    resp = requests.post(
        f"{BASE_URL}/notes",
        json={"title": title, "content": content},
        timeout=_TIMEOUT,
    )
    resp.raise_for_status()
    return resp.json()


def update_note(note_id: str, title: str, content: str) -> dict[str, Any]:
    """PUT /notes/{id} — edit a note."""
    resp = requests.put(
        f"{BASE_URL}/notes/{note_id}",
        json={"title": title, "content": content},
        timeout=_TIMEOUT,
    )
    resp.raise_for_status()
    return resp.json()


def delete_note(note_id: str) -> dict[str, Any]:
    """DELETE /notes/{id} — delete a note."""
    resp = requests.delete(f"{BASE_URL}/notes/{note_id}", timeout=_TIMEOUT)
    resp.raise_for_status()
    return resp.json()


def undo() -> dict[str, Any]:
    """POST /undo — undo the last add/delete."""
    resp = requests.post(f"{BASE_URL}/undo", timeout=_TIMEOUT)
    resp.raise_for_status()
    return resp.json()


def redo() -> dict[str, Any]:
    """POST /redo — redo the last undone add/delete."""
    resp = requests.post(f"{BASE_URL}/redo", timeout=_TIMEOUT)
    resp.raise_for_status()
    return resp.json()


def save(key: Optional[str] = None) -> dict[str, Any]:
    """POST /save — persist notes to the backend."""
    resp = requests.post(f"{BASE_URL}/save", json={"key": key}, timeout=_TIMEOUT)
    resp.raise_for_status()
    return resp.json()


def load(key: Optional[str] = None) -> dict[str, Any]:
    """POST /load — merge stored notes into the live collection."""
    resp = requests.post(f"{BASE_URL}/load", json={"key": key}, timeout=_TIMEOUT)
    resp.raise_for_status()
    return resp.json()


def get_notifications() -> list[dict[str, Any]]:
    """GET /notifications — recent store notifications."""
    resp = requests.get(f"{BASE_URL}/notifications", timeout=_TIMEOUT)
    resp.raise_for_status()
    return resp.json()


def get_health() -> dict[str, Any]:
    """GET /health — store and backend status."""
    resp = requests.get(f"{BASE_URL}/health", timeout=_TIMEOUT)
    resp.raise_for_status()
    return resp.json()
