"""Sidebar: undo/redo, save/load and backend status."""

from __future__ import annotations

import streamlit as st

from ui import api
from ui.components.board import safe_call


def render() -> None:
    """Render the shared sidebar controls."""
    with st.sidebar:
        st.header("History")
        health = safe_call(api.get_health) or {}
        col_undo, col_redo = st.columns(2)
        if col_undo.button(
            "↶ Undo",
            use_container_width=True,
            disabled=not health.get("can_undo", False),
        ):
            result = safe_call(api.undo)
            if result and result.get("action"):
                st.toast(f"Undo: {result['action']}")
            st.rerun()
        if col_redo.button(
            "↷ Redo",
            use_container_width=True,
            disabled=not health.get("can_redo", False),
        ):
            result = safe_call(api.redo)
            if result and result.get("action"):
                st.toast(f"Redo: {result['action']}")
            st.rerun()

        st.header("Storage")
        key = st.text_input("Collection key", health.get("collection_key", ""))
        col_save, col_load = st.columns(2)
        if col_save.button("💾 Save", use_container_width=True):
            if safe_call(api.save, key or None):
                st.toast("Notes saved.")
        if col_load.button("📂 Load", use_container_width=True):
            result = safe_call(api.load, key or None)
            if result:
                st.toast(f"Loaded — {result['count']} notes.")
                st.rerun()

        st.divider()
        st.metric("Notes", health.get("total_notes", 0))
        st.caption(
            f"Backend: {health.get('backend', '?')} "
            f"({health.get('backend_status', 'unknown')})"
        )
