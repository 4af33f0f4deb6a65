from __future__ import annotations

import pytest

from school_attendance.core.enums import AttendanceStatus, AuditAction
from school_attendance.core.exceptions import DatabaseError
from school_attendance.core.principal import AdminPrincipal, TeacherPrincipal

from conftest import TODAY

TEACHER = TeacherPrincipal(10, 1)
ADMIN = AdminPrincipal(1)


def _records_of(repos, student_id):
    return [r for r in repos.attendance.records.values() if r.student_id == student_id]


def test_summary_failure_rolls_back_only_that_student(tx_container, repos, unit_of_work):
    repos.summaries.fail_for_students.add(102)

    result = tx_container.attendance_service.bulk_mark_attendance(
        TEACHER,
        class_id=1,
        subject_id=1,
        date=TODAY,
        session="Lecture 1",
        student_attendance=[
            {"studentId": 101, "status": "present"},
            {"studentId": 102, "status": "absent"},
            {"studentId": 103, "status": "late"},
        ],
    )

    assert [s["studentId"] for s in result.successful] == [101, 103]
    assert [f["studentId"] for f in result.failed] == [102]
    assert (unit_of_work.committed, unit_of_work.rolled_back) == (2, 1)

    assert _records_of(repos, 102) == []
    assert repos.summaries.get(student_id=102, subject_id=1, class_id=1) is None
    audited = {e.record_id for e in repos.audit_logs.entries}
    assert audited == {r.record_id for r in repos.attendance.records.values()}
    assert len(audited) == 2


def test_failed_update_keeps_old_status_and_no_audit(tx_container, repos, unit_of_work, record_factory):
    record = record_factory(student_id=101, status=AttendanceStatus.PRESENT, on_date=TODAY)
    repos.summaries.fail_for_students.add(101)

    with pytest.raises(DatabaseError):
        tx_container.attendance_service.update_attendance(record.record_id, {"status": "late"}, TEACHER)

    assert repos.attendance.get_by_id(record.record_id).status == AttendanceStatus.PRESENT
    assert repos.audit_logs.entries == []
    assert unit_of_work.rolled_back == 1


def test_failed_delete_keeps_record_and_no_audit(tx_container, repos, unit_of_work, record_factory):
    record = record_factory(student_id=101, status=AttendanceStatus.PRESENT, on_date=TODAY)
    repos.summaries.fail_for_students.add(101)

    with pytest.raises(DatabaseError):
        tx_container.attendance_service.delete_attendance(record.record_id, ADMIN, "Marked twice")

    assert repos.attendance.get_by_id(record.record_id) is not None
    assert repos.audit_logs.entries == []
    assert unit_of_work.rolled_back == 1


def test_bulk_assignment_rolls_back_failed_student(tx_container, repos, unit_of_work):
    repos.summaries.fail_for_students.add(104)

    result = tx_container.bulk_service.assign_students_by_pattern(
        ADMIN, pattern="CSE2023*", target_class_id=1, subject_ids=[1], confirm=True
    )

    assert [s["studentId"] for s in result["successful"]] == [105]
    assert [f["studentId"] for f in result["failed"]] == [104]
    assert repos.students.get_by_id(104).class_id == 2
    assert repos.students.get_by_id(105).class_id == 1
    entries = [e for e in repos.audit_logs.entries if e.action == AuditAction.BULK_ASSIGN]
    assert [e.metadata["studentId"] for e in entries] == [105]
    assert (unit_of_work.committed, unit_of_work.rolled_back) == (1, 1)


def test_nested_units_join_the_outer_one(repos, unit_of_work):
    with pytest.raises(RuntimeError):
        with unit_of_work():
            repos.audit_logs.entries.append("outer")
            with unit_of_work():
                repos.audit_logs.entries.append("inner")
            raise RuntimeError("boom")

    assert repos.audit_logs.entries == []
    assert (unit_of_work.committed, unit_of_work.rolled_back) == (0, 1)
