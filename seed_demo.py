# seed_demo.py
from datetime import date, timedelta

from core.db import ensure_base_schema
from core.records import add_course, add_session, add_student, add_teacher, enroll

# make sure tables/columns exist
ensure_base_schema()

start = date.today()
end = start + timedelta(weeks=6)

teacher_id = add_teacher("Amina Haddad", "amina.haddad@example.org", "+20 100 000 0001", "12 Nile St")
course_id = add_course("Quran Reading – Level 1", teacher_id, "Reading")
session_id = add_session(course_id, teacher_id, start, end, "Monday, Thursday", "18:00", "Main hall")

students = [
    ("Omar Farouk",   "omar.farouk@example.org",   "3 Garden Rd", True),
    ("Layla Mansour", "layla.mansour@example.org", "8 Palm Ave",  True),
    ("Yusuf Karim",   "yusuf.karim@example.org",   None,          True),
    ("Sara Nabil",    "sara.nabil@example.org",    "21 Lake St",  False),
]
for name, email, address, can_host in students:
    sid = add_student(name, email, None, address)
    enroll(sid, session_id, can_host=can_host)

print(f"OK: session={session_id} ({start} → {end}), {len(students)} students enrolled")
