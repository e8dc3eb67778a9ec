"""Notes board entry point.

    streamlit run ui/app.py

The board talks to the notes service at ``NOTES_API_URL``.
"""

from __future__ import annotations

import sys
from pathlib import Path

# Streamlit runs this file as a script, so the package root is not importable yet.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import streamlit as st  # noqa: E402

st.set_page_config(page_title="Notes", page_icon="📝", layout="wide")

from ui import api  # noqa: E402
from ui.components import activity, board, sidebar  # noqa: E402
from ui.components.board import safe_call  # noqa: E402

pages = {
    "Board": [
        st.Page(board.render, title="Notes", icon="📝", url_path="notes", default=True)
    ],
    "History": [
        st.Page(activity.render, title="Activity", icon="📜", url_path="activity")
    ],
}
sidebar.render()
st.navigation(pages).run()


def _status_line(health: dict) -> str:
    """One-line summary of the collection and its undo/redo state."""
    if not health:
        return f"Notes service unreachable at {api.BASE_URL}"
    history = []
    if health.get("can_undo"):
        history.append("undo")
    if health.get("can_redo"):
        history.append("redo")
    return (
        f"{health.get('total_notes', 0)} notes in \"{health.get('collection_key')}\""
        f" · {health.get('backend')} storage ({health.get('backend_status')})"
        f" · history: {' / '.join(history) or 'empty'}"
    )


st.divider()
st.caption(_status_line(safe_call(api.get_health) or {}))
