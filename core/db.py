# core/db.py
from __future__ import annotations

import contextlib
import sqlite3
import uuid
from typing import Sequence

import pandas as pd

from .config import load_settings
from .logs import get_logger

DB_PATH = load_settings().db_path

log = get_logger(__name__)


# ------------------------------ Connection ------------------------------

@contextlib.contextmanager
def get_conn():
    """Yield a SQLite connection with Row factory. Use `with get_conn() as conn:` everywhere."""
    conn = sqlite3.connect(DB_PATH, check_same_thread=False)
    try:
        conn.row_factory = sqlite3.Row
        yield conn
        conn.commit()
    finally:
        conn.close()


# ------------------------------ Helpers ---------------------------------

def read_df(sql: str, params: Sequence | None = None) -> pd.DataFrame:
    with get_conn() as conn:
        return pd.read_sql_query(sql, conn, params=params or ())

def exec_sql(sql: str, params: Sequence | None = None) -> int:
    """Run one statement; returns the affected row count."""
    with get_conn() as conn:
        cur = conn.execute(sql, params or ())
        return cur.rowcount

def exec_sql_fetchone(sql: str, params: Sequence | None = None):
    """Run a query and return a single row (sqlite3.Row or None)."""
    with get_conn() as conn:
        cur = conn.execute(sql, params or ())
        return cur.fetchone()

def new_id() -> str:
    return uuid.uuid4().hex


# --------------------------- Base Schema --------------------------------
# Keep base tables minimal; evolving columns/indexes are added in migrations.

def ensure_base_schema() -> None:
    """Create baseline tables if missing. Idempotent and safe on older files."""
    with get_conn() as c:
        cur = c.cursor()

        cur.execute("""
        CREATE TABLE IF NOT EXISTS teacher(
            teacher_id  TEXT PRIMARY KEY,
            name        TEXT NOT NULL,
            phone       TEXT,
            email       TEXT NOT NULL UNIQUE
        )
        """)

        cur.execute("""
        CREATE TABLE IF NOT EXISTS student(
            student_id  TEXT PRIMARY KEY,
            name        TEXT NOT NULL,
            phone       TEXT,
            email       TEXT NOT NULL UNIQUE,
            address     TEXT
        )
        """)

        cur.execute("""
        CREATE TABLE IF NOT EXISTS course(
            course_id   TEXT PRIMARY KEY,
            teacher_id  TEXT,
            course_name TEXT NOT NULL,
            category    TEXT
        )
        """)

        # recurring session: day = free text like 'Monday, Wednesday'
        cur.execute("""
        CREATE TABLE IF NOT EXISTS session(
            session_id  TEXT PRIMARY KEY,
            course_id   TEXT NOT NULL,
            teacher_id  TEXT NOT NULL,
            start_date  TEXT NOT NULL,     -- 'YYYY-MM-DD'
            end_date    TEXT NOT NULL,
            day         TEXT,
            time        TEXT,
            location    TEXT
        )
        """)

        cur.execute("""
        CREATE TABLE IF NOT EXISTS enrollment(
            enrollment_id   TEXT PRIMARY KEY,
            student_id      TEXT NOT NULL,
            session_id      TEXT NOT NULL,
            enrollment_date TEXT DEFAULT (date('now')),
            status          TEXT DEFAULT 'active',
            UNIQUE(student_id, session_id)
        )
        """)

        # the teacher's own host date, one row per (teacher, session)
        cur.execute("""
        CREATE TABLE IF NOT EXISTS teacher_host_schedule(
            id          TEXT PRIMARY KEY,
            teacher_id  TEXT NOT NULL,
            session_id  TEXT NOT NULL,
            host_date   TEXT NOT NULL,
            updated_at  TEXT DEFAULT (datetime('now')),
            UNIQUE(teacher_id, session_id)
        )
        """)

        cur.execute("""
        CREATE TABLE IF NOT EXISTS attendance(
            attendance_id   TEXT PRIMARY KEY,
            enrollment_id   TEXT NOT NULL,
            student_id      TEXT NOT NULL,
            session_id      TEXT,
            attendance_date TEXT NOT NULL,
            status          TEXT DEFAULT 'absent',
            excuse_reason   TEXT,
            host_address    TEXT,
            marked_by       TEXT,
            marked_at       TEXT
        )
        """)

        cur.execute("""
        CREATE TABLE IF NOT EXISTS audit_log(
            audit_id    TEXT PRIMARY KEY,
            table_name  TEXT NOT NULL,
            record_id   TEXT NOT NULL,
            operation   TEXT NOT NULL CHECK (operation IN ('DELETE','UPDATE','INSERT')),
            old_data    TEXT,           -- JSON
            new_data    TEXT,           -- JSON
            deleted_by  TEXT,
            deleted_at  TEXT DEFAULT (datetime('now')),
            reason      TEXT
        )
        """)

    # Run migrations AFTER creating minimal tables
    run_light_migrations()


# ------------------------ Light Migrations --------------------------

def _table_cols(conn: sqlite3.Connection, table: str) -> set[str]:
    info = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return {row[1] for row in info} if info else set()

def run_light_migrations() -> None:
    """Add columns/indexes that newer pages expect. Idempotent and safe on existing files."""
    with get_conn() as c:
        have_e = _table_cols(c, "enrollment")
        for name, decl in [
            ("can_host",  "INTEGER NOT NULL DEFAULT 0"),
            ("host_date", "TEXT"),
        ]:
            if name not in have_e:
                try:
                    c.execute(f"ALTER TABLE enrollment ADD COLUMN {name} {decl}")
                except sqlite3.OperationalError:
                    log.warning("could not add enrollment.%s", name)

        have_t = _table_cols(c, "teacher")
        if "address" not in have_t:
            try:
                c.execute("ALTER TABLE teacher ADD COLUMN address TEXT")
            except sqlite3.OperationalError:
                log.warning("could not add teacher.address")

        for ddl in [
            "CREATE INDEX IF NOT EXISTS idx_enrollment_session   ON enrollment(session_id, status)",
            "CREATE INDEX IF NOT EXISTS idx_enrollment_host_date ON enrollment(host_date)",
            "CREATE INDEX IF NOT EXISTS idx_attendance_session   ON attendance(session_id, attendance_date)",
            "CREATE INDEX IF NOT EXISTS idx_ths_session          ON teacher_host_schedule(session_id)",
        ]:
            try:
                c.execute(ddl)
            except sqlite3.OperationalError:
                log.warning("index skipped: %s", ddl)

