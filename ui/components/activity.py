"""Activity page: recent store notifications."""

from __future__ import annotations

import streamlit as st

from ui import api
from ui.components.board import safe_call


def render() -> None:
    """Render the notification log, newest first."""
    st.title("📜 Activity")
    items = safe_call(api.get_notifications) or []
    if not items:
        st.info("No activity yet.")
        return
    for item in reversed(items):
        if item["level"] == "error":
            st.error(item["message"])
        else:
            st.success(item["message"])
    st.caption("Data refreshes on each page load.")
