# core/host_store.py
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

import pandas as pd

from .audit import log_delete
from .config import ACTIVE_STATUS, CANCELLED_MARKER, EXCUSED_STATUS
from .db import exec_sql, get_conn, new_id, read_df
from .hosting import HostCandidate, teacher_candidate
from .logs import get_logger

log = get_logger(__name__)


class StoreError(RuntimeError):
    """A write the store refuses or that matched no record."""


@dataclass
class SessionInfo:
    session_id: str
    start_date: str
    end_date: str
    day: Optional[str]
    time: Optional[str]
    location: Optional[str]
    teacher_id: Optional[str]
    teacher_name: str
    course_name: str

    @property
    def label(self) -> str:
        days = f" ({self.day})" if self.day else ""
        return f"{self.course_name} — {self.teacher_name}{days}, {self.start_date} → {self.end_date}"


def _s(v) -> Optional[str]:
    """pandas cell -> str or None."""
    if v is None:
        return None
    try:
        if pd.isna(v):
            return None
    except (TypeError, ValueError):
        pass
    s = str(v).strip()
    return s or None


def _flag(v) -> bool:
    if _s(v) is None:
        return False
    try:
        return bool(int(v))
    except (TypeError, ValueError):
        return str(v).strip().lower() in ("true", "yes", "y")


class SqliteHostStore:
    """Host scheduling reads/writes against the training-center tables."""

    # ---------------- reads ----------------

    def load_session(self, session_id: str) -> SessionInfo:
        df = read_df("""
            SELECT s.session_id, s.start_date, s.end_date, s.day, s.time, s.location, s.teacher_id,
                   COALESCE(t.name, '') AS teacher_name,
                   COALESCE(c.course_name, '') AS course_name
              FROM session s
              LEFT JOIN teacher t ON t.teacher_id = s.teacher_id
              LEFT JOIN course  c ON c.course_id  = s.course_id
             WHERE s.session_id = ?
             LIMIT 1
        """, (session_id,))
        if df.empty:
            raise StoreError(f"Unknown session {session_id}")
        r = df.iloc[0]
        return SessionInfo(
            session_id=str(r["session_id"]),
            start_date=_s(r["start_date"]) or "",
            end_date=_s(r["end_date"]) or "",
            day=_s(r["day"]),
            time=_s(r["time"]),
            location=_s(r["location"]),
            teacher_id=_s(r["teacher_id"]),
            teacher_name=_s(r["teacher_name"]) or "",
            course_name=_s(r["course_name"]) or "",
        )

    def load_candidates(self, session_id: str) -> List[HostCandidate]:
        """Active enrollments of the session plus the session's teacher, by name."""
        df = read_df("""
            SELECT e.enrollment_id, e.student_id, e.can_host, e.host_date,
                   st.name, st.address, st.phone
              FROM enrollment e
              JOIN student st ON st.student_id = e.student_id
             WHERE e.session_id = ?
               AND LOWER(COALESCE(e.status, 'active')) = ?
             ORDER BY st.name
        """, (session_id, ACTIVE_STATUS))
        out: List[HostCandidate] = []
        for _, r in df.iterrows():
            out.append(HostCandidate(
                id=str(r["enrollment_id"]),
                display_name=_s(r["name"]) or "",
                address=_s(r["address"]),
                phone=_s(r["phone"]),
                can_host=_flag(r["can_host"]),
                assigned_date=_s(r["host_date"]),
                person_id=_s(r["student_id"]),
            ))

        tdf = read_df("""
            SELECT t.teacher_id, t.name, t.address, t.phone, ths.host_date
              FROM session s
              JOIN teacher t ON t.teacher_id = s.teacher_id
              LEFT JOIN teacher_host_schedule ths
                     ON ths.teacher_id = s.teacher_id AND ths.session_id = s.session_id
             WHERE s.session_id = ?
             LIMIT 1
        """, (session_id,))
        if not tdf.empty:
            t = tdf.iloc[0]
            out.append(teacher_candidate(
                str(t["teacher_id"]),
                _s(t["name"]) or "",
                address=_s(t["address"]),
                phone=_s(t["phone"]),
                assigned_date=_s(t["host_date"]),
            ))
        out.sort(key=lambda c: c.display_name.casefold())
        return out

    def load_cancelled_dates(self, session_id: str) -> set[str]:
        df = read_df("""
            SELECT DISTINCT attendance_date
              FROM attendance
             WHERE session_id = ? AND UPPER(COALESCE(host_address, '')) = ?
        """, (session_id, CANCELLED_MARKER))
        return {str(d) for d in df["attendance_date"].tolist()} if not df.empty else set()

    # ---------------- host writes ----------------

    def save_host_date(self, session_id: str, candidate: HostCandidate, host_date: Optional[str]) -> None:
        if candidate.is_synthetic_teacher_row:
            if host_date is None:
                exec_sql("DELETE FROM teacher_host_schedule WHERE teacher_id=? AND session_id=?",
                         (candidate.person_id, session_id))
            else:
                exec_sql("""
                    INSERT INTO teacher_host_schedule(id, teacher_id, session_id, host_date)
                    VALUES(?,?,?,?)
                    ON CONFLICT(teacher_id, session_id)
                    DO UPDATE SET host_date=excluded.host_date, updated_at=datetime('now')
                """, (new_id(), candidate.person_id, session_id, host_date))
            return
        n = exec_sql("UPDATE enrollment SET host_date=? WHERE enrollment_id=?", (host_date, candidate.id))
        if n == 0:
            raise StoreError(f"Enrollment {candidate.id} not found")

    def set_can_host(self, session_id: str, candidate: HostCandidate, value: bool) -> None:
        if candidate.is_synthetic_teacher_row:
            raise StoreError("The teacher's hosting flag cannot be changed")
        n = exec_sql("UPDATE enrollment SET can_host=? WHERE enrollment_id=?", (1 if value else 0, candidate.id))
        if n == 0:
            raise StoreError(f"Enrollment {candidate.id} not found")

    # ---------------- cancelled dates ----------------

    def mark_cancelled(self, session_id: str, day: str, actor: str = "system",
                       reason: Optional[str] = None) -> int:
        """
        One excused attendance row per active enrollment, host_address = marker.
        Rows that already exist for that date are switched over rather than duplicated.
        """
        now = datetime.now().isoformat(timespec="seconds")
        excuse = reason or "Session not held"
        count = 0
        with get_conn() as conn:
            enrolled = conn.execute(
                "SELECT enrollment_id, student_id FROM enrollment "
                "WHERE session_id=? AND LOWER(COALESCE(status,'active'))=?",
                (session_id, ACTIVE_STATUS),
            ).fetchall()
            for e in enrolled:
                cur = conn.execute("""
                    UPDATE attendance
                       SET status=?, excuse_reason=?, host_address=?, marked_by=?, marked_at=?
                     WHERE enrollment_id=? AND attendance_date=?
                """, (EXCUSED_STATUS, excuse, CANCELLED_MARKER, actor, now, e["enrollment_id"], day))
                if cur.rowcount == 0:
                    conn.execute("""
                        INSERT INTO attendance(attendance_id, enrollment_id, student_id, session_id,
                                               attendance_date, status, excuse_reason, host_address,
                                               marked_by, marked_at)
                        VALUES(?,?,?,?,?,?,?,?,?,?)
                    """, (new_id(), e["enrollment_id"], e["student_id"], session_id, day,
                          EXCUSED_STATUS, excuse, CANCELLED_MARKER, actor, now))
                count += 1
        log.info("session %s: %s marked as not held (%d rows) by %s", session_id, day, count, actor)
        return count

    def unmark_cancelled(self, session_id: str, day: str, actor: str = "system",
                         reason: Optional[str] = None) -> int:
        """Delete the marker rows for that date; each deletion is audit-logged."""
        df = read_df("""
            SELECT * FROM attendance
             WHERE session_id=? AND attendance_date=? AND UPPER(COALESCE(host_address,''))=?
        """, (session_id, day, CANCELLED_MARKER))
        count = 0
        for _, r in df.iterrows():
            aid = str(r["attendance_id"])
            exec_sql("DELETE FROM attendance WHERE attendance_id=?", (aid,))
            count += 1
            log_delete("attendance", aid, {k: _s(v) for k, v in r.to_dict().items()},
                       actor=actor, reason=reason or f"Un-marked session not held on {day}")
        log.info("session %s: %s restored (%d rows) by %s", session_id, day, count, actor)
        return count
