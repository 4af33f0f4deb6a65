from __future__ import annotations

from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime
from typing import Optional

import pytest
from werkzeug.security import generate_password_hash

from school_attendance.attendance.model import AttendanceRecord, SummaryKey
from school_attendance.audit.model import ActionStat, AuditLogEntry
from school_attendance.auth.tokens import TokenCodec
from school_attendance.container import Repositories, wire_container
from school_attendance.core.enums import AttendanceStatus, Role, SessionType
from school_attendance.core.exceptions import AttendanceAlreadyMarkedError
from school_attendance.school.model import Admin, SchoolClass, Student, Subject, Teacher, TeacherAssignment
from school_attendance.sessions.model import SessionConfiguration
from school_attendance.summary.model import AttendanceSummary

NOW = datetime(2026, 3, 10, 9, 0, 0)
TODAY = NOW.date()
PASSWORD = "secret123"
PASSWORD_HASH = generate_password_hash(PASSWORD, method="pbkdf2:sha256:1000")


class FakeAdminRepo:
    def __init__(self, admins):
        self._by_id = {a.admin_id: a for a in admins}

    def get_by_id(self, admin_id):
        return self._by_id.get(int(admin_id))

    def get_by_email(self, email):
        return next((a for a in self._by_id.values() if a.email == email), None)


class FakeStudentRepo:
    def __init__(self, students, subjects=None):
        self.students = {s.student_id: s for s in students}
        self.subjects: dict[int, list[int]] = dict(subjects or {})
        self.fail_set_class_for: set[int] = set()

    def get_by_id(self, student_id):
        return self.students.get(int(student_id))

    def get_by_university_id(self, school_id, university_id):
        return next(
            (s for s in self.students.values() if s.school_id == school_id and s.university_id == university_id),
            None,
        )

    def get_many(self, student_ids):
        return [self.students[i] for i in student_ids if i in self.students]

    def list_by_class(self, class_id):
        return sorted(
            (s for s in self.students.values() if s.class_id == class_id and s.is_active),
            key=lambda s: s.roll_num,
        )

    def list_by_school(self, school_id):
        return [s for s in self.students.values() if s.school_id == school_id]

    def set_class(self, student_id, class_id):
        if student_id in self.fail_set_class_for:
            raise RuntimeError("lock wait timeout")
        self.students[student_id] = replace(self.students[student_id], class_id=class_id)
        return True

    def list_subject_ids(self, student_id):
        return list(self.subjects.get(student_id, []))

    def replace_subjects(self, student_id, subject_ids):
        self.subjects[student_id] = list(subject_ids)


class FakeTeacherRepo:
    def __init__(self, teachers, assignments):
        self.teachers = {t.teacher_id: t for t in teachers}
        self.assignments: set[tuple[int, int, int]] = set(assignments)

    def get_by_id(self, teacher_id):
        return self.teachers.get(int(teacher_id))

    def get_by_email(self, email):
        return next((t for t in self.teachers.values() if t.email == email), None)

    def has_assignment(self, teacher_id, class_id, subject_id):
        return (teacher_id, class_id, subject_id) in self.assignments

    def list_assignments(self, teacher_id):
        return [
            TeacherAssignment(teacher_id=t, class_id=c, subject_id=s)
            for t, c, s in sorted(self.assignments)
            if t == teacher_id
        ]

    def replace_assignments(self, teacher_id, pairs):
        self.assignments = {a for a in self.assignments if a[0] != teacher_id}
        self.assignments.update((teacher_id, c, s) for c, s in pairs)


class FakeClassRepo:
    def __init__(self, classes, subjects):
        self.classes = {c.class_id: c for c in classes}
        self.subjects = {s.subject_id: s for s in subjects}

    def get_class(self, class_id):
        return self.classes.get(int(class_id))

    def get_subject(self, subject_id):
        return self.subjects.get(int(subject_id))

    def list_classes(self, school_id):
        return [c for c in self.classes.values() if c.school_id == school_id]

    def list_subjects(self, school_id):
        return [s for s in self.subjects.values() if s.school_id == school_id]


class FakeSessionConfigRepo:
    def __init__(self, configs):
        self.configs = list(configs)

    def list_for_class_subject(self, class_id, subject_id):
        return [c for c in self.configs if c.class_id == class_id and c.subject_id == subject_id]


_SORT_ATTRS = {
    "date": lambda r: r.date,
    "session": lambda r: r.session,
    "status": lambda r: r.status.value,
    "markedAt": lambda r: r.marked_at,
    "studentId": lambda r: r.student_id,
    "classId": lambda r: r.class_id,
    "subjectId": lambda r: r.subject_id,
}


class FakeAttendanceRepo:
    """Keeps the natural key unique, like the UNIQUE index does in MySQL."""

    def __init__(self):
        self.records: dict[int, AttendanceRecord] = {}
        self._next_id = 1
        self.fail_for_students: set[int] = set()

    def _find(self, key):
        return next((r for r in self.records.values() if r.natural_key == key), None)

    def add(self, **kwargs) -> AttendanceRecord:
        record = AttendanceRecord(record_id=self._next_id, **kwargs)
        self._next_id += 1
        self.records[record.record_id] = record
        return record

    def get_by_id(self, record_id):
        return self.records.get(int(record_id))

    def get_by_key(self, *, student_id, class_id, subject_id, on_date, session, for_update=False):
        return self._find((student_id, class_id, subject_id, on_date, session))

    def upsert(
        self,
        *,
        student_id,
        class_id,
        subject_id,
        on_date,
        session,
        status,
        teacher_id,
        actor_id,
        actor_role,
        school_id,
        now,
    ):
        if student_id in self.fail_for_students:
            raise RuntimeError("connection lost")
        existing = self._find((student_id, class_id, subject_id, on_date, session))
        if existing:
            updated = replace(
                existing,
                status=status,
                teacher_id=teacher_id if teacher_id is not None else existing.teacher_id,
                last_modified_by=actor_id,
                last_modified_at=now,
            )
            self.records[existing.record_id] = updated
            return updated, False
        record = self.add(
            class_id=class_id,
            subject_id=subject_id,
            teacher_id=teacher_id,
            student_id=student_id,
            date=on_date,
            session=session,
            status=status,
            marked_by=actor_id,
            marked_by_role=actor_role,
            marked_at=now,
            school_id=school_id,
        )
        return record, True

    def update_fields(self, record_id, *, status, session, on_date, modified_by, modified_at):
        record = self.records.get(record_id)
        if not record:
            return None
        clash = self._find((record.student_id, record.class_id, record.subject_id, on_date, session))
        if clash and clash.record_id != record_id:
            raise AttendanceAlreadyMarkedError("Attendance already marked for this student and session")
        updated = replace(
            record,
            status=status,
            session=session,
            date=on_date,
            last_modified_by=modified_by,
            last_modified_at=modified_at,
        )
        self.records[record_id] = updated
        return updated

    def move_to_class(self, record_id, class_id):
        record = self.records.get(record_id)
        if not record:
            return None
        self.records[record_id] = replace(record, class_id=class_id)
        return self.records[record_id]

    def delete(self, record_id):
        return self.records.pop(record_id, None) is not None

    def count_by_status(self, *, student_id, subject_id, class_id):
        counts = {s: 0 for s in AttendanceStatus}
        for r in self.records.values():
            if (r.student_id, r.subject_id, r.class_id) == (student_id, subject_id, class_id):
                counts[r.status] += 1
        return counts

    def search(self, filters, *, sort_by="date", sort_order="desc", offset=0, limit=None):
        def keep(r: AttendanceRecord) -> bool:
            for attr in ("class_id", "subject_id", "teacher_id", "student_id", "school_id", "session", "status"):
                wanted = getattr(filters, attr)
                if wanted is not None and getattr(r, attr) != wanted:
                    return False
            if filters.start_date and r.date < filters.start_date:
                return False
            if filters.end_date and r.date > filters.end_date:
                return False
            return True

        matched = [r for r in self.records.values() if keep(r)]
        attr = _SORT_ATTRS.get(sort_by, _SORT_ATTRS["date"])
        matched.sort(key=lambda r: (attr(r), r.record_id), reverse=sort_order != "asc")
        page = matched[offset:] if limit is None else matched[offset : offset + limit]
        return page, len(matched)

    def list_for_session(self, *, class_id, subject_id, on_date, session):
        return [
            r
            for r in self.records.values()
            if (r.class_id, r.subject_id, r.date, r.session) == (class_id, subject_id, on_date, session)
        ]

    def list_for_student_class(self, *, student_id, class_id):
        return [r for r in self.records.values() if r.student_id == student_id and r.class_id == class_id]

    def list_summary_keys(self, *, school_id=None, class_id=None, subject_id=None):
        keys = []
        for r in self.records.values():
            if school_id is not None and r.school_id != school_id:
                continue
            if class_id is not None and r.class_id != class_id:
                continue
            if subject_id is not None and r.subject_id != subject_id:
                continue
            keys.append(SummaryKey(r.student_id, r.subject_id, r.class_id))
        return list(dict.fromkeys(keys))


class FakeSummaryRepo:
    def __init__(self):
        self.rows: dict[tuple[int, int, int], AttendanceSummary] = {}
        self._next_id = 1
        self.fail_for_students: set[int] = set()

    def get(self, *, student_id, subject_id, class_id):
        return self.rows.get((student_id, subject_id, class_id))

    def save(self, summary):
        if summary.student_id in self.fail_for_students:
            raise RuntimeError("deadlock found when trying to get lock")
        key = (summary.student_id, summary.subject_id, summary.class_id)
        existing = self.rows.get(key)
        summary_id = existing.summary_id if existing else self._next_id
        if not existing:
            self._next_id += 1
        self.rows[key] = replace(summary, summary_id=summary_id)
        return self.rows[key]

    def list_for_student(self, student_id, *, subject_id=None, class_id=None):
        return [
            s
            for s in self.rows.values()
            if s.student_id == student_id
            and (subject_id is None or s.subject_id == subject_id)
            and (class_id is None or s.class_id == class_id)
        ]

    def list_for_class(self, class_id, *, subject_id=None):
        return [
            s for s in self.rows.values() if s.class_id == class_id and (subject_id is None or s.subject_id == subject_id)
        ]

    def list_for_school(self, school_id):
        return [s for s in self.rows.values() if s.school_id == school_id]


class FakeAuditRepo:
    def __init__(self):
        self.entries: list[AuditLogEntry] = []

    def add(self, entry):
        log_id = len(self.entries) + 1
        self.entries.append(replace(entry, log_id=log_id))
        return log_id

    def _newest_first(self, entries):
        return sorted(entries, key=lambda e: (e.performed_at, e.log_id), reverse=True)

    def list_for_record(self, record_id, limit):
        return self._newest_first([e for e in self.entries if e.record_id == record_id])[:limit]

    def list_for_user(self, user_id, role, *, school_id=None, start=None, end=None, limit=100):
        matched = [
            e
            for e in self.entries
            if e.performed_by == user_id
            and e.performed_by_role == role
            and (school_id is None or e.school_id == school_id)
            and (start is None or e.performed_at >= start)
            and (end is None or e.performed_at <= end)
        ]
        return self._newest_first(matched)[:limit]

    def action_stats(self, school_id, *, start=None, end=None, actions=None):
        stats: dict = {}
        for e in self.entries:
            if e.school_id != school_id:
                continue
            if start is not None and e.performed_at < start:
                continue
            if end is not None and e.performed_at > end:
                continue
            if actions is not None and e.action not in actions:
                continue
            count, last = stats.get(e.action, (0, None))
            stats[e.action] = (count + 1, e.performed_at if last is None or e.performed_at > last else last)
        return [ActionStat(action=a, count=c, last_performed=l) for a, (c, l) in stats.items()]


def _config(config_id, class_id, subject_id, session_type, per_week, school_id=1, is_active=True):
    return SessionConfiguration(
        config_id=config_id,
        class_id=class_id,
        subject_id=subject_id,
        session_type=session_type,
        sessions_per_week=per_week,
        session_duration=60 if session_type == SessionType.LECTURE else 120,
        total_sessions=per_week * 15,
        school_id=school_id,
        is_active=is_active,
    )


def build_repositories() -> Repositories:
    """Two schools. School 1 (admin 1) has classes 1 and 2, school 2 (admin 2) has class 3."""

    admins = [
        Admin(1, "Principal One", "admin@one.school", PASSWORD_HASH, "School One"),
        Admin(2, "Principal Two", "admin@two.school", PASSWORD_HASH, "School Two"),
    ]
    classes = [
        SchoolClass(1, "CSE-A", 1),
        SchoolClass(2, "CSE-B", 1),
        SchoolClass(3, "ECE-A", 2),
    ]
    subjects = [
        Subject(1, "Data Structures", "DS101", 1, 1),
        Subject(2, "Databases", "DB201", 1, 1),
        Subject(3, "Signals", "SG101", 3, 2),
    ]
    teachers = [
        Teacher(10, "Ms. Rao", "rao@one.school", PASSWORD_HASH, 1),
        Teacher(11, "Mr. Lee", "lee@one.school", PASSWORD_HASH, 1),
        Teacher(12, "Mr. Gone", "gone@one.school", PASSWORD_HASH, 1, is_active=False),
        Teacher(20, "Dr. Ng", "ng@two.school", PASSWORD_HASH, 2),
    ]
    assignments = [(10, 1, 1), (10, 1, 2), (11, 2, 1), (20, 3, 3)]
    students = [
        Student(101, "Alice", "1", "CSE2024001", 1, 1, PASSWORD_HASH),
        Student(102, "Bob", "2", "CSE2024002", 1, 1, PASSWORD_HASH),
        Student(103, "Chen", "10", "CSE2024003", 1, 1, PASSWORD_HASH),
        Student(104, "Dana", "1", "CSE2023001", 2, 1, PASSWORD_HASH),
        Student(105, "Eve", "2", "CSE2023002", 2, 1, PASSWORD_HASH, is_active=False),
        Student(201, "Farah", "1", "ECE2024001", 3, 2, PASSWORD_HASH),
    ]
    enrolled = {101: [1, 2], 102: [1, 2], 103: [1, 2], 104: [1], 201: [3]}
    configs = [
        _config(1, 1, 1, SessionType.LECTURE, 3),
        _config(2, 1, 1, SessionType.LAB, 1),
        _config(3, 1, 2, SessionType.LECTURE, 2),
        _config(4, 1, 2, SessionType.TUTORIAL, 1, is_active=False),
        _config(5, 2, 1, SessionType.LECTURE, 2),
        _config(6, 3, 3, SessionType.LECTURE, 2, school_id=2),
    ]

    return Repositories(
        admins=FakeAdminRepo(admins),
        students=FakeStudentRepo(students, enrolled),
        teachers=FakeTeacherRepo(teachers, assignments),
        classes=FakeClassRepo(classes, subjects),
        session_configs=FakeSessionConfigRepo(configs),
        attendance=FakeAttendanceRepo(),
        summaries=FakeSummaryRepo(),
        audit_logs=FakeAuditRepo(),
    )


class Clock:
    """Settable clock; tests move it forward to order audit entries."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def repos():
    return build_repositories()


@pytest.fixture
def tokens():
    return TokenCodec("test-jwt-secret", expire_minutes=30)


@pytest.fixture
def container(repos, tokens, clock):
    return wire_container(repos, tokens=tokens, clock=clock)


class RollbackUnitOfWork:
    """Transaction stand-in over the fake stores.

    The outermost block snapshots every store and restores it if the block
    raises; nested blocks join the outer one, like DatabaseConnection.transaction.
    """

    def __init__(self, repos: Repositories):
        self._repos = repos
        self._depth = 0
        self.committed = 0
        self.rolled_back = 0

    def _snapshot(self):
        r = self._repos
        return (
            dict(r.attendance.records),
            r.attendance._next_id,
            dict(r.summaries.rows),
            r.summaries._next_id,
            list(r.audit_logs.entries),
            dict(r.students.students),
            {k: list(v) for k, v in r.students.subjects.items()},
            set(r.teachers.assignments),
        )

    def _restore(self, snapshot):
        r = self._repos
        (
            r.attendance.records,
            r.attendance._next_id,
            r.summaries.rows,
            r.summaries._next_id,
            r.audit_logs.entries,
            r.students.students,
            r.students.subjects,
            r.teachers.assignments,
        ) = snapshot

    @contextmanager
    def __call__(self):
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        snapshot = self._snapshot()
        self._depth = 1
        try:
            yield
        except BaseException:
            self._restore(snapshot)
            self.rolled_back += 1
            raise
        else:
            self.committed += 1
        finally:
            self._depth = 0


@pytest.fixture
def unit_of_work(repos):
    return RollbackUnitOfWork(repos)


@pytest.fixture
def tx_container(repos, tokens, clock, unit_of_work):
    return wire_container(repos, tokens=tokens, clock=clock, unit_of_work=unit_of_work)


def add_record(
    repos: Repositories,
    *,
    student_id: int,
    status: AttendanceStatus,
    on_date: date,
    session: str = "Lecture 1",
    class_id: int = 1,
    subject_id: int = 1,
    school_id: int = 1,
    teacher_id: Optional[int] = 10,
) -> AttendanceRecord:
    return repos.attendance.add(
        class_id=class_id,
        subject_id=subject_id,
        teacher_id=teacher_id,
        student_id=student_id,
        date=on_date,
        session=session,
        status=status,
        marked_by=teacher_id or 1,
        marked_by_role=Role.TEACHER if teacher_id else Role.ADMIN,
        marked_at=NOW,
        school_id=school_id,
    )


@pytest.fixture
def record_factory(repos):
    def factory(**kwargs) -> AttendanceRecord:
        return add_record(repos, **kwargs)

    return factory
