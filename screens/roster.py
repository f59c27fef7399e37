# screens/roster.py
from __future__ import annotations
from datetime import date, timedelta

import streamlit as st

from core.db import ensure_base_schema
from core.records import (
    EMAIL_ALIASES,
    NAME_ALIASES,
    add_course,
    add_session,
    add_student,
    add_teacher,
    enroll,
    import_enrollments,
    list_courses,
    list_sessions,
    list_students,
    list_teachers,
    session_roster,
    set_enrollment_status,
)
from core.scheduler import WEEKDAY_NAMES
from core.utils import df_to_csv_bytes, read_table_file

FULL_DAY = {
    "Mon": "Monday", "Tue": "Tuesday", "Wed": "Wednesday", "Thu": "Thursday",
    "Fri": "Friday", "Sat": "Saturday", "Sun": "Sunday",
}

# -------------------------------------------------
# Add forms
# -------------------------------------------------
def _people_forms():
    c1, c2 = st.columns(2)
    with c1:
        st.markdown("#### Add Teacher")
        with st.form("add_teacher", clear_on_submit=True):
            name = st.text_input("Name *", key="t_name")
            email = st.text_input("Email *", key="t_email")
            phone = st.text_input("Phone", key="t_phone")
            address = st.text_input("Address", key="t_address")
            ok = st.form_submit_button("Add teacher")
        if ok:
            try:
                add_teacher(name, email, phone, address)
                st.success("Teacher added.")
                st.rerun()
            except Exception as e:
                st.error(f"Could not add teacher: {e}")

    with c2:
        st.markdown("#### Add Student")
        with st.form("add_student", clear_on_submit=True):
            name = st.text_input("Name *", key="s_name")
            email = st.text_input("Email *", key="s_email")
            phone = st.text_input("Phone", key="s_phone")
            address = st.text_input("Address", key="s_address")
            ok = st.form_submit_button("Add student")
        if ok:
            try:
                add_student(name, email, phone, address)
                st.success("Student added.")
                st.rerun()
            except Exception as e:
                st.error(f"Could not add student: {e}")


def _course_session_forms():
    teachers = list_teachers()
    if teachers.empty:
        st.info("Add a teacher first.")
        return
    t_ids = teachers["teacher_id"].tolist()
    t_names = dict(zip(t_ids, teachers["name"].tolist()))

    c1, c2 = st.columns(2)
    with c1:
        st.markdown("#### Add Course")
        with st.form("add_course", clear_on_submit=True):
            cname = st.text_input("Course name *")
            category = st.text_input("Category")
            tid = st.selectbox("Teacher", t_ids, format_func=lambda i: t_names.get(i, i), key="course_teacher")
            ok = st.form_submit_button("Add course")
        if ok:
            try:
                add_course(cname, tid, category)
                st.success("Course added.")
                st.rerun()
            except Exception as e:
                st.error(f"Could not add course: {e}")

    with c2:
        st.markdown("#### Add Session")
        courses = list_courses()
        if courses.empty:
            st.info("Add a course first.")
            return
        c_ids = courses["course_id"].tolist()
        c_names = dict(zip(c_ids, courses["course_name"].tolist()))
        with st.form("add_session", clear_on_submit=True):
            cid = st.selectbox("Course", c_ids, format_func=lambda i: c_names.get(i, i))
            tid = st.selectbox("Teacher", t_ids, format_func=lambda i: t_names.get(i, i), key="session_teacher")
            d1, d2 = st.columns(2)
            with d1:
                sd = st.date_input("Start", value=date.today())
            with d2:
                ed = st.date_input("End", value=date.today() + timedelta(weeks=8))
            days = st.multiselect("Days", WEEKDAY_NAMES, help="Leave empty for every day")
            time_txt = st.text_input("Time", placeholder="e.g., 18:00")
            location = st.text_input("Location")
            ok = st.form_submit_button("Add session")
        if ok:
            try:
                add_session(cid, tid, sd, ed, ", ".join(FULL_DAY[d] for d in days) or None, time_txt, location)
                st.success("Session added.")
                st.rerun()
            except Exception as e:
                st.error(f"Could not add session: {e}")


# -------------------------------------------------
# Session roster
# -------------------------------------------------
def _session_roster(session_id: str, label: str, actor: str):
    roster = session_roster(session_id)
    st.markdown("### Enrolled")
    if roster.empty:
        st.info("Nobody enrolled yet.")
    else:
        st.dataframe(roster.drop(columns=["enrollment_id"]), use_container_width=True, hide_index=True)
        st.download_button(
            "Export roster (CSV)",
            data=df_to_csv_bytes(roster.drop(columns=["enrollment_id"])),
            file_name=f"roster_{session_id}.csv",
            mime="text/csv",
        )

    c1, c2 = st.columns(2)
    with c1:
        st.markdown("#### Enroll a student")
        students = list_students()
        if students.empty:
            st.caption("No students yet.")
        else:
            s_ids = students["student_id"].tolist()
            s_names = dict(zip(s_ids, (students["name"] + " <" + students["email"] + ">").tolist()))
            sid = st.selectbox("Student", s_ids, format_func=lambda i: s_names.get(i, i), key="roster_enroll_pick")
            can_host = st.checkbox("Can host", key="roster_enroll_host")
            if st.button("Enroll", use_container_width=True):
                try:
                    enroll(sid, session_id, can_host=can_host)
                    st.success("Enrolled.")
                    st.rerun()
                except Exception as e:
                    st.error(f"Could not enroll: {e}")
    with c2:
        st.markdown("#### Withdraw")
        active = roster[roster["Status"].str.lower() == "active"] if not roster.empty else roster
        if active.empty:
            st.caption("No active enrollments.")
        else:
            e_ids = active["enrollment_id"].tolist()
            e_names = dict(zip(e_ids, active["Student"].tolist()))
            eid = st.selectbox("Enrollment", e_ids, format_func=lambda i: e_names.get(i, i), key="roster_withdraw_pick")
            if st.button("Withdraw", use_container_width=True):
                try:
                    set_enrollment_status(eid, "inactive", actor=actor)
                    st.success("Withdrawn.")
                    st.rerun()
                except Exception as e:
                    st.error(f"Could not withdraw: {e}")

    st.markdown("### Import enrollments")
    up = st.file_uploader(
        "Students for this session (CSV or Excel)",
        type=["csv", "xlsx", "xls"],
        help=f"Required: name ({', '.join(NAME_ALIASES)}) and email ({', '.join(EMAIL_ALIASES)}). "
             "Optional: phone, address, can host.",
        key="roster_import",
    )
    if up is not None and st.button("Import now"):
        try:
            df_raw = read_table_file(up)
            if df_raw.empty:
                st.error("Could not read any rows from the file.")
                return
            report = import_enrollments(df_raw, session_id)
            st.success(f"Imported {report.imported} row(s) into '{label}'."
                       + (f" Skipped {len(report.skipped)}." if report.skipped else ""))
            if report.skipped:
                with st.expander("Why some rows were skipped?", expanded=True):
                    st.dataframe(report.skipped_frame(), use_container_width=True)
        except Exception as e:
            st.error(f"Import failed: {e}")


# -------------------------------------------------
# Main page
# -------------------------------------------------
def render(user: dict):
    ensure_base_schema()
    st.header("Sessions & Enrollments")

    tab_people, tab_sessions, tab_roster = st.tabs(["People", "Courses & Sessions", "Roster"])
    with tab_people:
        _people_forms()
    with tab_sessions:
        _course_session_forms()
        sessions = list_sessions()
        st.markdown("### Sessions")
        if sessions.empty:
            st.info("No sessions yet.")
        else:
            show = sessions.drop(columns=["session_id", "label"])
            st.dataframe(show, use_container_width=True, hide_index=True)
            st.download_button(
                "Export sessions (CSV)",
                data=df_to_csv_bytes(show),
                file_name="sessions.csv",
                mime="text/csv",
            )
    with tab_roster:
        sessions = list_sessions()
        if sessions.empty:
            st.info("No sessions yet.")
            return
        ids = sessions["session_id"].tolist()
        labels = dict(zip(ids, sessions["label"].tolist()))
        sid = st.selectbox("Session", ids, format_func=lambda i: labels.get(i, i), key="roster_session")
        _session_roster(sid, labels.get(sid, sid), (user or {}).get("operator") or "system")
