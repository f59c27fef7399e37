# screens/host_schedule.py
from __future__ import annotations
from typing import List

import pandas as pd
import streamlit as st

from core.config import LANGUAGES, load_settings
from core.db import ensure_base_schema
from core.export import (
    calendar_frame,
    export_filename,
    schedule_csv_bytes,
    schedule_docx_bytes,
    schedule_excel_bytes,
)
from core.host_store import SqliteHostStore, StoreError
from core.hosting import HostSchedule, OperationResult
from core.notify import CollectingListener, Notifier
from core.records import list_sessions

NO_DATE = "—"
_TOAST_ICONS = {"success": "✅", "error": "❌", "warning": "⚠️", "info": "ℹ️"}

# session_state keys
K_SCHEDULE = "hs_schedule"
K_SESSION = "hs_session_id"
K_INBOX = "hs_inbox"
K_CONFIRM = "hs_confirm_action"


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------

def _load(session_id: str, actor: str) -> HostSchedule:
    notifier = Notifier()
    inbox = st.session_state.setdefault(K_INBOX, CollectingListener())
    notifier.subscribe(inbox)
    sched = HostSchedule.load(SqliteHostStore(), session_id, notifier=notifier, actor=actor)
    st.session_state[K_SCHEDULE] = sched
    st.session_state[K_SESSION] = session_id
    st.session_state.pop(K_CONFIRM, None)
    return sched

def _schedule_for(session_id: str, actor: str) -> HostSchedule:
    sched = st.session_state.get(K_SCHEDULE)
    if sched is None or st.session_state.get(K_SESSION) != session_id:
        return _load(session_id, actor)
    sched.actor = actor
    return sched

def _flush_toasts() -> None:
    inbox = st.session_state.get(K_INBOX)
    if inbox is None:
        return
    for level, msg in inbox.drain():
        st.toast(msg, icon=_TOAST_ICONS.get(level, "ℹ️"))

def _ask(kind: str, **payload) -> None:
    st.session_state[K_CONFIRM] = {"kind": kind, **payload}
    st.rerun()

def _date_label(sched: HostSchedule, d: str) -> str:
    if d == NO_DATE:
        return d
    tags = []
    if sched.is_cancelled(d):
        tags.append("not held")
    if sched.dates and d not in sched.dates:
        tags.append("outside session")
    return f"{d} ({', '.join(tags)})" if tags else d


# ---------------------------------------------------------------------------
# Confirmation box
# ---------------------------------------------------------------------------

def _confirm_box(sched: HostSchedule) -> None:
    act = st.session_state.get(K_CONFIRM)
    if not act:
        return
    kind = act.get("kind")
    if kind == "clear_all":
        text = "Clear the host date of every listed host?"
    elif kind == "mark_cancelled":
        text = (f"Mark **{act['date']}** as *session not held*? "
                f"Every active student gets an excused attendance record for that date.")
    elif kind == "unmark_cancelled":
        text = f"Restore **{act['date']}**? The not-held attendance records are deleted (and audit-logged)."
    elif kind == "assign_cancelled":
        text = act.get("message") or f"{act['date']} is marked as not held. Assign anyway?"
    else:
        st.session_state.pop(K_CONFIRM, None)
        return

    with st.container(border=True):
        st.warning(text)
        c1, c2, _ = st.columns([1, 1, 4])
        with c1:
            yes = st.button("Yes, continue", key="hs_confirm_yes", type="primary", use_container_width=True)
        with c2:
            no = st.button("Cancel", key="hs_confirm_no", use_container_width=True)
    if no:
        st.session_state.pop(K_CONFIRM, None)
        st.rerun()
    if yes:
        st.session_state.pop(K_CONFIRM, None)
        try:
            if kind == "clear_all":
                sched.clear_all()
            elif kind == "mark_cancelled":
                sched.mark_cancelled(act["date"], act.get("reason") or None)
            elif kind == "unmark_cancelled":
                sched.unmark_cancelled(act["date"], act.get("reason") or None)
            elif kind == "assign_cancelled":
                sched.assign(act["candidate_id"], act["date"], confirm_cancelled=True)
        except Exception as e:
            st.error(f"Action failed: {e}")
            return
        st.rerun()


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

def _toolbar(sched: HostSchedule) -> None:
    c1, c2, c3, c4, c5 = st.columns(5)
    with c1:
        if st.button("◀ Shift back", use_container_width=True, disabled=not sched.dates):
            sched.shift_all(-1)
            st.rerun()
    with c2:
        if st.button("Shift forward ▶", use_container_width=True, disabled=not sched.dates):
            sched.shift_all(+1)
            st.rerun()
    with c3:
        if st.button("Quick fix duplicates", use_container_width=True):
            res = sched.quick_fix()
            if not res.changes:
                sched.notifier.info("No duplicate dates to fix.")
            st.rerun()
    with c4:
        if st.button("Clear all", use_container_width=True):
            _ask("clear_all")
    with c5:
        if st.button("Reload", use_container_width=True, help="Re-read the stored schedule"):
            _load(sched.session_id, sched.actor)
            st.rerun()


def _host_table(sched: HostSchedule) -> None:
    shown = sched.displayed()
    if not shown:
        st.info("Nobody in this session can host yet. Turn on 'Can host' below.")
        return

    h = st.columns([2.2, 2.6, 1.4, 2.4])
    h[0].markdown("**Name**"); h[1].markdown("**Address**"); h[2].markdown("**Phone**"); h[3].markdown("**Host date**")

    for cand in shown:
        cur = sched.date_of(cand.id)
        options: List[str] = [NO_DATE] + list(sched.dates)
        if cur and cur not in options:
            options.append(cur)
        idx = options.index(cur) if cur else 0

        c = st.columns([2.2, 2.6, 1.4, 2.4])
        name = cand.display_name + (" (teacher)" if cand.is_synthetic_teacher_row else "")
        c[0].write(name)
        c[1].write(cand.address or "⚠️ no address")
        c[2].write(cand.phone or "")
        key = f"hs_date_{cand.id}_{cur}"
        with c[3]:
            picked = st.selectbox(
                "Host date", options, index=idx,
                format_func=lambda d: _date_label(sched, d),
                key=key,
                label_visibility="collapsed",
            )
        new = None if picked == NO_DATE else picked
        if new != cur:
            res: OperationResult = sched.assign(cand.id, new)
            if res.needs_confirmation:
                # widget goes back to the stored date until the user confirms
                st.session_state.pop(key, None)
                _ask("assign_cancelled", candidate_id=cand.id, date=res.pending_date, message=res.message)
            st.rerun()


def _can_host_section(sched: HostSchedule) -> None:
    with st.expander("Who can host", expanded=False):
        for cand in sched.candidates:
            label = cand.display_name + (" (teacher, always hosts)" if cand.is_synthetic_teacher_row else "")
            val = st.checkbox(
                label, value=cand.can_host,
                key=f"hs_can_{cand.id}_{cand.can_host}",
                disabled=cand.is_synthetic_teacher_row,
            )
            if val != cand.can_host:
                sched.set_can_host(cand.id, val)
                st.rerun()


def _validation_panel(sched: HostSchedule) -> None:
    st.subheader("Checks")
    cov = sched.coverage()
    m1, m2 = st.columns([1, 3])
    m1.metric("Coverage", cov.label, help="Dates with a host, counting dates before the first assigned one")
    with m2:
        st.progress(min(1.0, cov.fraction), text=f"{cov.remaining} date(s) still need a host")
    for issue in sched.validate():
        if issue.code == "coverage":
            continue
        show = {"error": st.error, "warning": st.warning, "success": st.success}.get(issue.level, st.info)
        show(issue.message)


def _calendar(sched: HostSchedule) -> None:
    st.subheader("Calendar")
    days = sched.calendar_view()
    if not days:
        st.info("This session has no dates.")
        return
    per_row = 7
    for i in range(0, len(days), per_row):
        cols = st.columns(per_row)
        for col, day in zip(cols, days[i:i + per_row]):
            with col.container(border=True):
                head = f"**{day.weekday} {day.date[5:]}**"
                if not day.in_window:
                    head += " ·out"
                st.markdown(head)
                if day.cancelled:
                    st.caption("⛔ not held")
                if day.candidates:
                    for c in day.candidates:
                        st.write(c.display_name)
                else:
                    st.caption("no host")


def _cancelled_dates(sched: HostSchedule) -> None:
    st.subheader("Sessions not held")
    if sched.cancelled:
        st.dataframe(pd.DataFrame({"Date": sorted(sched.cancelled)}), use_container_width=True, hide_index=True)
    else:
        st.caption("All session dates are held.")

    c1, c2 = st.columns(2)
    with c1:
        open_dates = [d for d in sched.dates if d not in sched.cancelled]
        d = st.selectbox("Date", open_dates or ["(none)"], key="hs_mark_date")
        reason = st.text_input("Reason (optional)", key="hs_mark_reason")
        if st.button("Mark as not held", disabled=not open_dates, use_container_width=True):
            _ask("mark_cancelled", date=d, reason=reason.strip())
    with c2:
        marked = sorted(sched.cancelled)
        d2 = st.selectbox("Marked date", marked or ["(none)"], key="hs_unmark_date")
        if st.button("Restore date", disabled=not marked, use_container_width=True):
            _ask("unmark_cancelled", date=d2)


def _downloads(sched: HostSchedule) -> None:
    st.subheader("Export")
    default_lang = load_settings().language
    lang = st.radio("Language", LANGUAGES, index=LANGUAGES.index(default_lang),
                    format_func=lambda x: {"en": "English", "ar": "العربية"}.get(x, x),
                    horizontal=True, key="hs_lang")
    c1, c2, c3 = st.columns(3)
    with c1:
        st.download_button(
            "Download CSV",
            data=schedule_csv_bytes(sched, lang),
            file_name=export_filename(sched.session_id, "csv"),
            mime="text/csv",
            use_container_width=True,
        )
    with c2:
        st.download_button(
            "Download Excel",
            data=schedule_excel_bytes(sched, lang),
            file_name=export_filename(sched.session_id, "xlsx"),
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            use_container_width=True,
        )
    with c3:
        st.download_button(
            "Download Word",
            data=schedule_docx_bytes(sched, lang),
            file_name=export_filename(sched.session_id, "docx"),
            mime="application/vnd.openxmlformats-officedocument.wordprocessingml.document",
            use_container_width=True,
        )
    with st.expander("Calendar table"):
        st.dataframe(calendar_frame(sched, lang), use_container_width=True, hide_index=True)


# ---------------------------------------------------------------------------
# Page
# ---------------------------------------------------------------------------

def render(user: dict):
    ensure_base_schema()
    st.header("Host Schedule")

    sessions = list_sessions()
    if sessions.empty:
        st.info("No sessions yet. Create one under Sessions & Enrollments.")
        return

    ids = sessions["session_id"].tolist()
    labels = dict(zip(ids, sessions["label"].tolist()))
    prev = st.session_state.get(K_SESSION)
    sid = st.selectbox("Session", ids, index=ids.index(prev) if prev in ids else 0,
                       format_func=lambda i: labels.get(i, i))

    actor = (user or {}).get("operator") or "system"
    try:
        sched = _schedule_for(sid, actor)
    except StoreError as e:
        st.error(str(e))
        return

    _flush_toasts()
    _confirm_box(sched)

    st.caption(f"{len(sched.dates)} session date(s) · {len(sched.displayed())} host(s)")
    _toolbar(sched)
    _host_table(sched)
    _can_host_section(sched)

    st.divider()
    _validation_panel(sched)
    st.divider()
    _calendar(sched)
    st.divider()
    _cancelled_dates(sched)
    st.divider()
    _downloads(sched)
