"""Shared fixtures: a throwaway SQLite file per test and a small seeded session."""
import pytest

import core.db as db
from core.records import add_course, add_session, add_student, add_teacher, enroll


@pytest.fixture
def fresh_db(tmp_path, monkeypatch):
    """Point the app at an empty database file with the full schema."""
    path = tmp_path / "training_center.db"
    monkeypatch.setattr(db, "DB_PATH", path)
    db.ensure_base_schema()
    return path


@pytest.fixture
def seeded(fresh_db):
    """Teacher + Mon/Wed session over two weeks + three students (two can host)."""
    teacher_id = add_teacher("Hana Teacher", "hana@example.org", "555-0100", "1 School Rd")
    course_id = add_course("Tajweed", teacher_id)
    session_id = add_session(course_id, teacher_id, "2025-01-06", "2025-01-19", "Monday, Wednesday")
    ids = {}
    for name, email, address, host in [
        ("Adam", "adam@example.org", "10 Oak St", True),
        ("Bea", "bea@example.org", None, True),
        ("Cyrus", "cyrus@example.org", "7 Elm St", False),
    ]:
        sid = add_student(name, email, None, address)
        ids[name] = enroll(sid, session_id, can_host=host)
    return {"session_id": session_id, "teacher_id": teacher_id, "enrollments": ids}
