from __future__ import annotations

from datetime import date

import pytest

from school_attendance.attendance.model import AttendanceFilters, PageOptions
from school_attendance.core.enums import AttendanceStatus, AuditAction
from school_attendance.core.exceptions import (
    AttendanceAlreadyMarkedError,
    AttendanceAuthorizationError,
    AuthorizationError,
    DatabaseError,
    InvalidSessionError,
    NotFoundError,
    ValidationError,
)
from school_attendance.core.principal import AdminPrincipal, StudentPrincipal, TeacherPrincipal

TEACHER = TeacherPrincipal(10, 1)
ADMIN = AdminPrincipal(1)
D1 = date(2026, 3, 2)
D2 = date(2026, 3, 3)


# ---- update -------------------------------------------------------------


def test_update_status_writes_audit_and_summary(container, repos, record_factory):
    record = record_factory(student_id=101, status=AttendanceStatus.PRESENT, on_date=D1)
    container.summary_service.update_student_summary(101, 1, 1)

    updated = container.attendance_service.update_attendance(record.record_id, {"status": "late"}, TEACHER)

    assert updated.status == AttendanceStatus.LATE
    assert updated.last_modified_by == 10
    entry = repos.audit_logs.entries[-1]
    assert entry.action == AuditAction.UPDATE
    assert entry.old_values["status"] == "present"
    assert entry.new_values["status"] == "late"
    assert repos.summaries.get(student_id=101, subject_id=1, class_id=1).late_count == 1


def test_update_rejects_other_fields(container, record_factory):
    record = record_factory(student_id=101, status=AttendanceStatus.PRESENT, on_date=D1)
    with pytest.raises(ValidationError, match="studentId"):
        container.attendance_service.update_attendance(record.record_id, {"studentId": 102}, TEACHER)


def test_update_revalidates_assignment(container, repos, record_factory):
    record = record_factory(student_id=101, status=AttendanceStatus.PRESENT, on_date=D1)
    with pytest.raises(AttendanceAuthorizationError):
        container.attendance_service.update_attendance(record.record_id, {"status": "absent"}, TeacherPrincipal(11, 1))
    assert repos.attendance.get_by_id(record.record_id).status == AttendanceStatus.PRESENT


def test_update_session_must_be_configured(container, record_factory):
    record = record_factory(student_id=101, status=AttendanceStatus.PRESENT, on_date=D1)
    with pytest.raises(InvalidSessionError):
        container.attendance_service.update_attendance(record.record_id, {"session": "Seminar"}, TEACHER)


def test_update_onto_taken_key_conflicts(container, record_factory):
    record = record_factory(student_id=101, status=AttendanceStatus.PRESENT, on_date=D1, session="Lecture 1")
    record_factory(student_id=101, status=AttendanceStatus.ABSENT, on_date=D1, session="Lecture 2")

    with pytest.raises(AttendanceAlreadyMarkedError) as exc:
        container.attendance_service.update_attendance(record.record_id, {"session": "Lecture 2"}, TEACHER)
    assert exc.value.status_code == 409


def test_update_missing_record(container):
    with pytest.raises(NotFoundError):
        container.attendance_service.update_attendance(999, {"status": "late"}, TEACHER)


# ---- delete -------------------------------------------------------------


def test_delete_requires_admin_and_reason(container, record_factory):
    record = record_factory(student_id=101, status=AttendanceStatus.PRESENT, on_date=D1)
    with pytest.raises(AuthorizationError):
        container.attendance_service.delete_attendance(record.record_id, TEACHER, "typo")
    with pytest.raises(ValidationError):
        container.attendance_service.delete_attendance(record.record_id, ADMIN, "  ")


def test_delete_reason_longer_than_column_is_rejected(container, repos, record_factory):
    record = record_factory(student_id=101, status=AttendanceStatus.PRESENT, on_date=D1)

    with pytest.raises(ValidationError, match="500"):
        container.attendance_service.delete_attendance(record.record_id, ADMIN, "x" * 501)

    assert repos.attendance.get_by_id(record.record_id) is not None
    assert repos.audit_logs.entries == []

    container.attendance_service.delete_attendance(record.record_id, ADMIN, "y" * 500)
    assert len(repos.audit_logs.entries[-1].reason) == 500


def test_delete_keeps_snapshot_in_audit(container, repos, record_factory):
    record = record_factory(student_id=101, status=AttendanceStatus.PRESENT, on_date=D1)
    record_factory(student_id=101, status=AttendanceStatus.ABSENT, on_date=D2)
    container.summary_service.update_student_summary(101, 1, 1)

    container.attendance_service.delete_attendance(record.record_id, ADMIN, "Marked for the wrong day")

    assert repos.attendance.get_by_id(record.record_id) is None
    entry = repos.audit_logs.entries[-1]
    assert entry.action == AuditAction.DELETE
    assert entry.record_id == record.record_id
    assert entry.old_values == record.to_dict()
    assert entry.new_values is None
    assert entry.reason == "Marked for the wrong day"

    summary = repos.summaries.get(student_id=101, subject_id=1, class_id=1)
    assert (summary.total_sessions, summary.present_count, summary.absent_count) == (1, 0, 1)


def test_delete_from_other_school_is_not_found(container, record_factory):
    record = record_factory(student_id=101, status=AttendanceStatus.PRESENT, on_date=D1)
    with pytest.raises(NotFoundError):
        container.attendance_service.delete_attendance(record.record_id, AdminPrincipal(2), "cleanup")


# ---- reads --------------------------------------------------------------


def _seed_week(record_factory):
    for day in range(2, 7):
        for student_id, status in ((101, AttendanceStatus.PRESENT), (102, AttendanceStatus.ABSENT)):
            record_factory(student_id=student_id, status=status, on_date=date(2026, 3, day))
    record_factory(student_id=201, status=AttendanceStatus.PRESENT, on_date=D1, class_id=3, subject_id=3, school_id=2, teacher_id=20)


def test_filters_paginate_and_expand(container, record_factory):
    _seed_week(record_factory)

    page = container.attendance_service.get_attendance_by_filters(
        AttendanceFilters(class_id=1), PageOptions(page=2, limit=4), ADMIN
    )
    body = page.to_dict()

    assert body["pagination"] == {
        "currentPage": 2,
        "totalPages": 3,
        "totalRecords": 10,
        "hasNextPage": True,
        "hasPrevPage": True,
    }
    assert len(body["records"]) == 4
    first = body["records"][0]
    assert first["student"]["name"] in {"Alice", "Bob"}
    assert first["teacher"] == {"name": "Ms. Rao"}
    assert first["subject"] == {"name": "Data Structures", "code": "DS101"}
    assert first["class"] == {"name": "CSE-A"}


def test_filters_sort_ascending_by_date(container, record_factory):
    _seed_week(record_factory)
    page = container.attendance_service.get_attendance_by_filters(
        AttendanceFilters(status=AttendanceStatus.PRESENT), PageOptions(sort_order="asc", expand=False), ADMIN
    )
    dates = [r["date"] for r in page.records]
    assert dates == sorted(dates)
    assert page.total_records == 5
    assert all(r["schoolId"] == 1 for r in page.records)


def test_student_only_sees_own_records(container, record_factory):
    _seed_week(record_factory)
    page = container.attendance_service.get_attendance_by_filters(
        AttendanceFilters(), PageOptions(expand=False), StudentPrincipal(101, 1)
    )
    assert page.total_records == 5
    assert {r["studentId"] for r in page.records} == {101}

    with pytest.raises(AttendanceAuthorizationError):
        container.attendance_service.get_attendance_by_filters(
            AttendanceFilters(student_id=102), PageOptions(), StudentPrincipal(101, 1)
        )


@pytest.mark.parametrize(
    "options",
    [PageOptions(page=0), PageOptions(limit=0), PageOptions(limit=201), PageOptions(sort_by="name"), PageOptions(sort_order="up")],
)
def test_invalid_page_options(container, options):
    with pytest.raises(ValidationError):
        container.attendance_service.get_attendance_by_filters(AttendanceFilters(), options, ADMIN)


def test_inverted_date_range_rejected(container):
    with pytest.raises(ValidationError):
        container.attendance_service.get_attendance_by_filters(
            AttendanceFilters(start_date=D2, end_date=D1), PageOptions(), ADMIN
        )


def test_session_summary_counts_statuses(container):
    container.attendance_service.bulk_mark_attendance(
        TEACHER,
        class_id=1,
        subject_id=1,
        date="2026-03-09",
        session="Lecture 1",
        student_attendance=[{"studentId": 101, "status": "present"}, {"studentId": 102, "status": "absent"}],
    )

    summary = container.attendance_service.get_session_summary(1, 1, "2026-03-09", "Lecture 1", TEACHER)

    assert summary["present"] == 1
    assert summary["absent"] == 1
    assert summary["late"] == 0
    assert summary["excused"] == 0
    assert summary["total"] == 2
    assert summary["details"]["absent"] == [102]


def test_session_summary_needs_session(container):
    with pytest.raises(ValidationError):
        container.attendance_service.get_session_summary(1, 1, "2026-03-09", "")


def test_get_record_scoping(container, record_factory):
    record = record_factory(student_id=101, status=AttendanceStatus.PRESENT, on_date=D1)
    svc = container.attendance_service

    assert svc.get_record(record.record_id, StudentPrincipal(101, 1)).record_id == record.record_id
    with pytest.raises(AttendanceAuthorizationError):
        svc.get_record(record.record_id, StudentPrincipal(102, 1))
    with pytest.raises(NotFoundError):
        svc.get_record(record.record_id, AdminPrincipal(2))


def test_get_record_store_failure_is_database_error(container, repos, monkeypatch):
    def broken(record_id):
        raise RuntimeError("MySQL server has gone away")

    monkeypatch.setattr(repos.attendance, "get_by_id", broken)

    with pytest.raises(DatabaseError) as exc:
        container.attendance_service.get_record(1, ADMIN)
    assert exc.value.status_code == 500


def test_session_options_list_active_configs(container):
    options = container.attendance_service.get_session_options(1, 1, TEACHER)
    assert [o["value"] for o in options] == ["Lecture 1", "Lecture 2", "Lecture 3", "Lab"]
    assert options[-1] == {"value": "Lab", "label": "Lab", "type": "lab", "duration": 120}
