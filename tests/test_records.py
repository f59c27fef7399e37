"""Tests for roster records and the enrollment import."""
import sqlite3

import pandas as pd
import pytest

from core.db import read_df
from core.records import (
    add_course,
    add_session,
    add_student,
    add_teacher,
    enroll,
    import_enrollments,
    list_sessions,
    session_roster,
    set_enrollment_status,
)


def test_import_skips_duplicate_email_and_incomplete_rows(seeded) -> None:
    sid = seeded["session_id"]
    df = pd.DataFrame({
        "Student Name": ["Dina", "Dina Again", "Eli", "", "Fay"],
        "E-mail": ["dina@example.org", "DINA@example.org", "eli@example.org", "nobody@example.org", "not-an-email"],
        "Address": ["4 Pine St", None, "", "", ""],
        "Can Host": ["yes", "", "0", "", ""],
    })
    report = import_enrollments(df, sid)

    assert report.imported == 2
    assert [n for n, _ in report.skipped] == [2, 4, 5]
    reasons = dict(report.skipped)
    assert "Already enrolled" in reasons[2]
    assert reasons[4] == "Missing name or email"
    assert reasons[5].startswith("Bad email")

    roster = session_roster(sid)
    dina = roster[roster["Email"] == "dina@example.org"].iloc[0]
    assert dina["Can Host"] == "Yes"
    assert dina["Address"] == "4 Pine St"
    assert len(roster) == 5
    assert list(report.skipped_frame().columns) == ["row_number", "reason"]


def test_import_enrolls_existing_student_without_duplicating(seeded) -> None:
    course = read_df("SELECT course_id FROM course")["course_id"].iloc[0]
    other = add_session(course, seeded["teacher_id"], "2025-02-01", "2025-02-28")
    df = pd.DataFrame({"name": ["Adam"], "email": ["adam@example.org"], "phone": ["555-0199"]})
    report = import_enrollments(df, other)
    assert report.imported == 1
    students = read_df("SELECT name, phone FROM student WHERE email='adam@example.org'")
    assert students.to_dict("records") == [{"name": "Adam", "phone": "555-0199"}]


def test_import_requires_name_and_email_columns(seeded) -> None:
    with pytest.raises(ValueError):
        import_enrollments(pd.DataFrame({"name": ["X"]}), seeded["session_id"])
    assert import_enrollments(pd.DataFrame(), seeded["session_id"]).imported == 0


def test_enroll_reactivates_inactive_enrollment(seeded) -> None:
    sid = seeded["session_id"]
    eid = seeded["enrollments"]["Cyrus"]
    student = read_df("SELECT student_id FROM enrollment WHERE enrollment_id=?", (eid,))["student_id"].iloc[0]

    with pytest.raises(sqlite3.IntegrityError):
        enroll(student, sid)

    set_enrollment_status(eid, "inactive")
    assert enroll(student, sid, can_host=True) == eid
    row = read_df("SELECT status, can_host FROM enrollment WHERE enrollment_id=?", (eid,)).iloc[0]
    assert row["status"] == "active"
    assert int(row["can_host"]) == 1


def test_add_session_validates_dates(fresh_db) -> None:
    tid = add_teacher("T", "t@example.org")
    cid = add_course("C", tid)
    with pytest.raises(ValueError):
        add_session(cid, tid, "2025-02-01", "2025-01-01")
    with pytest.raises(ValueError):
        add_session(cid, tid, "soon", "2025-01-01")


def test_add_records_reject_missing_fields(fresh_db) -> None:
    with pytest.raises(ValueError):
        add_student("", "x@example.org")
    with pytest.raises(ValueError):
        add_teacher("Name", "no-at-sign")
    with pytest.raises(ValueError):
        add_course("  ")


def test_list_sessions_has_labels(seeded) -> None:
    sessions = list_sessions()
    assert len(sessions) == 1
    row = sessions.iloc[0]
    assert row["enrolled"] == 3
    assert "Tajweed" in row["label"] and "Hana Teacher" in row["label"]


def test_list_sessions_empty(fresh_db) -> None:
    df = list_sessions()
    assert df.empty and "label" in df.columns
