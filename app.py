# app.py
from __future__ import annotations
import pandas as pd
import streamlit as st

from core.config import load_settings
from core.db import ensure_base_schema, get_conn
from core.logs import get_logger

# --- Screens (ALL from `screens/`) ---
from screens import (
    audit_log,
    host_schedule,
    roster,
)

st.set_page_config(page_title="Training Center · Host Rotation", layout="wide")

log = get_logger(__name__)

# --------------- Navigation ----------------
PAGES = {
    "Host Schedule":          lambda u: host_schedule.render(u),
    "Sessions & Enrollments": lambda u: roster.render(u),
    "Audit Log":              lambda u: audit_log.render(u),
}


# ----------------- Views -----------------
def _app_view():
    settings = load_settings()
    pages = list(PAGES)

    with st.sidebar:
        st.markdown("### Training Center")
        operator = st.text_input(
            "Operator", value=st.session_state.get("operator", settings.operator),
            help="Recorded on attendance and audit entries",
        ).strip() or settings.operator
        st.session_state["operator"] = operator

        st.markdown("---")
        st.caption("Navigate")

        # Remember last page to avoid double-click issue
        prev = st.session_state.get("current_page", pages[0])
        if prev not in pages:
            prev = pages[0]

        page_choice = st.selectbox(
            " ",
            pages,
            index=pages.index(prev),
            label_visibility="collapsed",
            key="__page_select__",
        )

        if page_choice != prev:
            st.session_state["current_page"] = page_choice
            st.rerun()

        st.session_state["current_page"] = page_choice
        st.caption(f"DB: {settings.db_path}")

    PAGES[page_choice]({"operator": operator})


# ----------------- Main -----------------
def main():
    # Ensure DB schema + migrations BEFORE any page queries
    try:
        ensure_base_schema()
        with get_conn() as _:
            pass
    except Exception as e:
        log.exception("database not usable")
        st.error(f"Database not usable: {e}")
        st.stop()

    _app_view()


if __name__ == "__main__":
    pd.options.mode.copy_on_write = True
    main()
