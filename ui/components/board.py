"""Notes page: add form plus one editable card per note."""

from __future__ import annotations

from typing import Any

import requests
import streamlit as st

from ui import api

_COLUMNS = 3


def _error_detail(error: requests.HTTPError) -> str:
    """Prefer the API's ``detail`` field over the raw HTTP error."""
    try:
        return error.response.json()["detail"]
    except (AttributeError, KeyError, TypeError, ValueError):
        return str(error)


def safe_call(fn: Any, *args: Any) -> Any:
    """Call an API function, showing an error instead of raising."""
    try:
        return fn(*args)
    except requests.ConnectionError:
        st.error(
            "Cannot reach the backend API. "
            "Make sure the FastAPI server is running on port 8000."
        )
    except requests.HTTPError as e:
        st.error(f"Request failed: {_error_detail(e)}")
    except Exception as e:
        st.error(f"Request failed: {e}")
    return None


def _render_form() -> None:
    """Add-note form; inputs are cleared after submit."""
    with st.form("note-form", clear_on_submit=True):
        title = st.text_input("Title")
        content = st.text_area("Content")
        if st.form_submit_button("Add note", type="primary"):
            note = safe_call(api.create_note, title, content)
            if note:
                st.toast(f"Note \"{note['title']}\" added.")
                st.rerun()


def _render_card(note: dict[str, Any]) -> None:
    """Editable note card with save and delete buttons."""
    note_id = note["id"]
    with st.container(border=True):
        title = st.text_input("Title", note["title"], key=f"title_{note_id}")
        content = st.text_area("Content", note["content"], key=f"content_{note_id}")
        st.caption(f"Created {note['createdAt']} · Updated {note['updatedAt']}")
        col_save, col_delete = st.columns(2)
        if col_save.button("Save edit", key=f"save_{note_id}", use_container_width=True):
            if safe_call(api.update_note, note_id, title, content):
                # Edits are persisted right away, as in the original board
                safe_call(api.save)
                st.rerun()
        if col_delete.button("Delete", key=f"delete_{note_id}", use_container_width=True):
            if safe_call(api.delete_note, note_id):
                st.rerun()


def render() -> None:
    """Render the notes board."""
    st.title("📝 Notes")
    _render_form()

    notes = safe_call(api.list_notes) or []
    if not notes:
        st.info("No notes yet. Add one above.")
        return

    cols = st.columns(_COLUMNS)
    for i, note in enumerate(notes):
        with cols[i % _COLUMNS]:
            _render_card(note)
