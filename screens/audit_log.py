# screens/audit_log.py
from __future__ import annotations
import json

import streamlit as st

from core.audit import recent_entries
from core.db import ensure_base_schema
from core.utils import df_to_csv_bytes


def _summary(raw) -> str:
    if not raw:
        return ""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        return str(raw)
    if not isinstance(data, dict):
        return str(data)
    keys = ("attendance_date", "status", "host_address", "student_id")
    return ", ".join(f"{k}={data[k]}" for k in keys if data.get(k))


def render(user: dict):
    ensure_base_schema()
    st.header("Audit Log")

    limit = st.selectbox("Show", [50, 100, 200, 500], index=2)
    df = recent_entries(limit)
    if df.empty:
        st.info("No audit entries.")
        return

    df_show = df.copy()
    df_show["Record"] = df_show["old_data"].apply(_summary)
    df_show.rename(columns={
        "deleted_at": "When",
        "operation": "Operation",
        "table_name": "Table",
        "record_id": "Record id",
        "deleted_by": "By",
        "reason": "Reason",
    }, inplace=True)
    df_show = df_show[["When", "Operation", "Table", "Record", "By", "Reason", "Record id"]]
    st.dataframe(df_show, use_container_width=True, hide_index=True)

    st.download_button(
        "Export (CSV)",
        data=df_to_csv_bytes(df),
        file_name="audit_log.csv",
        mime="text/csv",
    )
