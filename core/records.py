# core/records.py
from __future__ import annotations
import sqlite3
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import pandas as pd

from .audit import log_update
from .config import ACTIVE_STATUS
from .db import exec_sql, exec_sql_fetchone, get_conn, new_id, read_df
from .logs import get_logger
from .scheduler import parse_day_filter, parse_ymd, to_ymd
from .utils import clean_cell, looks_like_email

log = get_logger(__name__)

# -------------------------------------------------
# Single-record writes
# -------------------------------------------------

def add_teacher(name: str, email: str, phone: str | None = None, address: str | None = None) -> str:
    if not clean_cell(name) or not looks_like_email(email):
        raise ValueError("Teacher needs a name and a valid email.")
    tid = new_id()
    exec_sql("INSERT INTO teacher(teacher_id, name, email, phone, address) VALUES(?,?,?,?,?)",
             (tid, clean_cell(name), email.strip().lower(), clean_cell(phone) or None, clean_cell(address) or None))
    return tid

def add_student(name: str, email: str, phone: str | None = None, address: str | None = None) -> str:
    if not clean_cell(name) or not looks_like_email(email):
        raise ValueError("Student needs a name and a valid email.")
    sid = new_id()
    exec_sql("INSERT INTO student(student_id, name, email, phone, address) VALUES(?,?,?,?,?)",
             (sid, clean_cell(name), email.strip().lower(), clean_cell(phone) or None, clean_cell(address) or None))
    return sid

def add_course(course_name: str, teacher_id: str | None = None, category: str | None = None) -> str:
    if not clean_cell(course_name):
        raise ValueError("Course name is required.")
    cid = new_id()
    exec_sql("INSERT INTO course(course_id, teacher_id, course_name, category) VALUES(?,?,?,?)",
             (cid, teacher_id, clean_cell(course_name), clean_cell(category) or None))
    return cid

def add_session(course_id: str, teacher_id: str, start_date, end_date,
                day: str | None = None, time: str | None = None, location: str | None = None) -> str:
    sd, ed = parse_ymd(start_date), parse_ymd(end_date)
    if sd is None or ed is None:
        raise ValueError("Start and end dates must be YYYY-MM-DD.")
    if sd > ed:
        raise ValueError("Start date must not be after end date.")
    if day and parse_day_filter(day) is None:
        log.warning("session day %r names no weekday; every date will be used", day)
    sess_id = new_id()
    exec_sql("""
        INSERT INTO session(session_id, course_id, teacher_id, start_date, end_date, day, time, location)
        VALUES(?,?,?,?,?,?,?,?)
    """, (sess_id, course_id, teacher_id, to_ymd(sd), to_ymd(ed),
          clean_cell(day) or None, clean_cell(time) or None, clean_cell(location) or None))
    return sess_id

def enroll(student_id: str, session_id: str, can_host: bool = False) -> str:
    """
    New active enrollment. An inactive one for the same student/session is re-activated.
    An active duplicate raises sqlite3.IntegrityError.
    """
    row = exec_sql_fetchone("SELECT enrollment_id, status FROM enrollment WHERE student_id=? AND session_id=?",
                            (student_id, session_id))
    if row is not None and str(row["status"] or "").lower() != ACTIVE_STATUS:
        exec_sql("UPDATE enrollment SET status=?, can_host=? WHERE enrollment_id=?",
                 (ACTIVE_STATUS, 1 if can_host else 0, row["enrollment_id"]))
        return str(row["enrollment_id"])
    eid = new_id()
    exec_sql("INSERT INTO enrollment(enrollment_id, student_id, session_id, status, can_host) VALUES(?,?,?,?,?)",
             (eid, student_id, session_id, ACTIVE_STATUS, 1 if can_host else 0))
    return eid

def set_enrollment_status(enrollment_id: str, status: str, actor: str = "system") -> None:
    row = exec_sql_fetchone("SELECT status FROM enrollment WHERE enrollment_id=?", (enrollment_id,))
    if row is None:
        raise ValueError(f"Enrollment {enrollment_id} not found")
    old = row["status"]
    if str(old or "").lower() == status.lower():
        return
    exec_sql("UPDATE enrollment SET status=? WHERE enrollment_id=?", (status, enrollment_id))
    log_update("enrollment", enrollment_id, {"status": old}, {"status": status},
               actor=actor, reason=f"Enrollment set to {status}")

# -------------------------------------------------
# Listings
# -------------------------------------------------

def list_teachers() -> pd.DataFrame:
    return read_df("SELECT teacher_id, name, email, COALESCE(phone,'') AS phone, COALESCE(address,'') AS address "
                   "FROM teacher ORDER BY name")

def list_students() -> pd.DataFrame:
    return read_df("SELECT student_id, name, email, COALESCE(phone,'') AS phone, COALESCE(address,'') AS address "
                   "FROM student ORDER BY name")

def list_courses() -> pd.DataFrame:
    return read_df("""
        SELECT c.course_id, c.course_name, COALESCE(c.category,'') AS category, c.teacher_id,
               COALESCE(t.name,'') AS teacher_name
          FROM course c LEFT JOIN teacher t ON t.teacher_id = c.teacher_id
         ORDER BY c.course_name
    """)

def list_sessions() -> pd.DataFrame:
    df = read_df("""
        SELECT s.session_id, s.start_date, s.end_date, COALESCE(s.day,'') AS day, COALESCE(s.time,'') AS time,
               COALESCE(c.course_name,'') AS course_name, COALESCE(t.name,'') AS teacher_name,
               (SELECT COUNT(*) FROM enrollment e
                 WHERE e.session_id = s.session_id AND LOWER(COALESCE(e.status,'active'))='active') AS enrolled
          FROM session s
          LEFT JOIN course c  ON c.course_id  = s.course_id
          LEFT JOIN teacher t ON t.teacher_id = s.teacher_id
         ORDER BY s.start_date DESC, c.course_name
    """)
    if df.empty:
        return pd.DataFrame(columns=list(df.columns) + ["label"])
    df["label"] = df.apply(
        lambda r: f"{r['course_name']} — {r['teacher_name']}"
                  + (f" ({r['day']})" if str(r["day"]).strip() else "")
                  + f", {r['start_date']} → {r['end_date']}",
        axis=1,
    )
    return df

def session_roster(session_id: str) -> pd.DataFrame:
    return read_df("""
        SELECT e.enrollment_id, st.name AS 'Student', st.email AS 'Email',
               COALESCE(st.phone,'') AS 'Phone', COALESCE(st.address,'') AS 'Address',
               CASE WHEN COALESCE(e.can_host,0)=1 THEN 'Yes' ELSE 'No' END AS 'Can Host',
               COALESCE(e.host_date,'') AS 'Host Date', COALESCE(e.status,'') AS 'Status'
          FROM enrollment e JOIN student st ON st.student_id = e.student_id
         WHERE e.session_id=?
         ORDER BY st.name
    """, (session_id,))

# -------------------------------------------------
# Bulk import (row by row, no transaction)
# -------------------------------------------------

NAME_ALIASES    = ["student name", "name", "student", "full name", "fullname"]
EMAIL_ALIASES   = ["email", "e-mail", "mail"]
PHONE_ALIASES   = ["phone", "mobile", "phone number", "tel"]
ADDRESS_ALIASES = ["address", "home address", "location"]
HOST_ALIASES    = ["can host", "can_host", "host"]

def _pick_col(cols: set[str], candidates: List[str]) -> Optional[str]:
    for c in candidates:
        if c in cols:
            return c
    return None

def _truthy(s: str) -> bool:
    return clean_cell(s).lower() in ("1", "true", "yes", "y", "x", "نعم")


@dataclass
class ImportReport:
    imported: int = 0
    skipped: List[Tuple[int, str]] = field(default_factory=list)   # (row_number, reason)

    def skipped_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.skipped, columns=["row_number", "reason"])


def _upsert_student(name: str, email: str, phone: str, address: str) -> str:
    row = exec_sql_fetchone("SELECT student_id FROM student WHERE LOWER(email)=LOWER(?)", (email,))
    if row is None:
        return add_student(name, email, phone or None, address or None)
    with get_conn() as conn:
        conn.execute("""
            UPDATE student
               SET name=?, phone=COALESCE(?, phone), address=COALESCE(?, address)
             WHERE student_id=?
        """, (name, phone or None, address or None, row["student_id"]))
    return str(row["student_id"])


def import_enrollments(df: pd.DataFrame, session_id: str) -> ImportReport:
    """
    Each row: upsert the student by email, then enroll in `session_id`.
    Rows that are incomplete or already enrolled are skipped with a reason.
    """
    report = ImportReport()
    if df is None or df.empty:
        return report
    df = df.copy()
    df.columns = [str(c).strip().lower() for c in df.columns]
    cols = set(df.columns)
    name_col = _pick_col(cols, NAME_ALIASES)
    email_col = _pick_col(cols, EMAIL_ALIASES)
    if not name_col or not email_col:
        raise ValueError(
            f"Missing required columns. Looked for name in {NAME_ALIASES} and email in {EMAIL_ALIASES}."
        )
    phone_col = _pick_col(cols, PHONE_ALIASES)
    addr_col = _pick_col(cols, ADDRESS_ALIASES)
    host_col = _pick_col(cols, HOST_ALIASES)

    for pos, (_, r) in enumerate(df.iterrows()):
        row_no = pos + 1
        name = clean_cell(r.get(name_col))
        email = clean_cell(r.get(email_col)).lower()
        if not name or not email:
            report.skipped.append((row_no, "Missing name or email"))
            continue
        if not looks_like_email(email):
            report.skipped.append((row_no, f"Bad email: {email}"))
            continue
        phone = clean_cell(r.get(phone_col)) if phone_col else ""
        address = clean_cell(r.get(addr_col)) if addr_col else ""
        can_host = _truthy(r.get(host_col)) if host_col else False
        try:
            sid = _upsert_student(name, email, phone, address)
            enroll(sid, session_id, can_host=can_host)
        except sqlite3.IntegrityError:
            report.skipped.append((row_no, f"Already enrolled: {email}"))
            continue
        report.imported += 1

    log.info("import into session %s: %d imported, %d skipped", session_id, report.imported, len(report.skipped))
    return report
