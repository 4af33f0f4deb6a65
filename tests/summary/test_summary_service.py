from __future__ import annotations

from datetime import date

import pytest

from school_attendance.core.enums import AlertLevel, AttendanceStatus
from school_attendance.core.exceptions import ValidationError
from school_attendance.summary.service import alert_level

P, A, L, E = AttendanceStatus.PRESENT, AttendanceStatus.ABSENT, AttendanceStatus.LATE, AttendanceStatus.EXCUSED
SESSIONS = ["Lecture 1", "Lecture 2", "Lecture 3", "Lab"]


def _seed(record_factory, student_id, statuses, *, subject_id=1, start_day=2):
    for i, status in enumerate(statuses):
        record_factory(
            student_id=student_id,
            status=status,
            on_date=date(2026, 3, start_day + i // len(SESSIONS)),
            session=SESSIONS[i % len(SESSIONS)],
            subject_id=subject_id,
        )


def test_update_student_summary_rebuilds_from_records(container, repos, record_factory):
    _seed(record_factory, 101, [P, P, A, L])

    summary = container.summary_service.update_student_summary(101, 1, 1)

    assert (summary.total_sessions, summary.present_count, summary.absent_count, summary.late_count) == (4, 2, 1, 1)
    assert summary.attendance_percentage == 50.0
    assert summary.school_id == 1
    assert repos.summaries.get(student_id=101, subject_id=1, class_id=1) == summary


def test_initialize_is_idempotent(container, repos):
    first = container.summary_service.initialize_student_summary(104, 1, 2)
    second = container.summary_service.initialize_student_summary(104, 1, 2)

    assert first.total_sessions == 0
    assert first.summary_id == second.summary_id
    assert len(repos.summaries.rows) == 1


def test_recalculate_all_touches_only_one_school(container, repos, record_factory):
    _seed(record_factory, 101, [P, A])
    _seed(record_factory, 102, [P])
    record_factory(student_id=201, status=P, on_date=date(2026, 3, 2), class_id=3, subject_id=3, school_id=2, teacher_id=20)

    results = container.summary_service.recalculate_all_summaries(1)

    assert results == {"processed": 2, "updated": 2, "errors": 0, "errorDetails": []}
    assert repos.summaries.get(student_id=201, subject_id=3, class_id=3) is None


def test_bulk_update_includes_enrolled_students_without_records(container, repos, record_factory):
    _seed(record_factory, 101, [P])

    results = container.summary_service.bulk_update_summaries(1, 1)

    assert results["processed"] == 3
    assert repos.summaries.get(student_id=102, subject_id=1, class_id=1).total_sessions == 0


def test_trigger_summary_updates_dedupes_keys(container, repos, record_factory):
    _seed(record_factory, 101, [P, A, P])
    updated = container.summary_service.trigger_summary_updates(list(repos.attendance.records.values()))
    assert len(updated) == 1
    assert updated[0].total_sessions == 3


def test_student_summary_includes_all_calculations(container, record_factory):
    _seed(record_factory, 101, [P, P, L, E])
    container.summary_service.update_student_summary(101, 1, 1)

    rows = container.summary_service.get_student_attendance_summary(101)

    assert len(rows) == 1
    row = rows[0]
    assert row["subjectName"] == "Data Structures"
    assert row["className"] == "CSE-A"
    assert row["attendancePercentage"] == 50.0
    assert row["calculatedPercentages"] == {"standard": 87.5, "strict": 50.0, "lenient": 100.0}


def test_class_summary_sorted_with_statistics(container, record_factory):
    _seed(record_factory, 101, [P, P, P, P])
    _seed(record_factory, 102, [P, A, A, A])
    _seed(record_factory, 103, [P, P, P, A])
    for student_id in (101, 102, 103):
        container.summary_service.update_student_summary(student_id, 1, 1)

    result = container.summary_service.get_class_attendance_summary(1, 1)

    assert [r["studentId"] for r in result["students"]] == [101, 103, 102]
    assert result["students"][0]["studentName"] == "Alice"
    stats = result["statistics"]
    assert stats["averageAttendance"] == round((100 + 25 + 75) / 3, 2)
    assert stats["highestAttendance"] == 100.0
    assert stats["lowestAttendance"] == 25.0
    assert stats["studentsAboveThreshold"] == 2
    assert stats["studentsBelowThreshold"] == 1

    by_name = container.summary_service.get_class_attendance_summary(1, 1, sort_by="name", sort_order="asc")
    assert [r["studentName"] for r in by_name["students"]] == ["Alice", "Bob", "Chen"]


def test_class_summary_rejects_unknown_sort(container):
    with pytest.raises(ValidationError):
        container.summary_service.get_class_attendance_summary(1, 1, sort_by="height")


def test_empty_class_statistics_are_zero(container):
    stats = container.summary_service.get_class_attendance_summary(2, 1)["statistics"]
    assert stats["averageAttendance"] == 0
    assert stats["studentsBelowThreshold"] == 0


def test_trends_bucket_by_iso_week(container, record_factory):
    # 2026-03-06 is a Friday (week 10), 2026-03-09 a Monday (week 11)
    record_factory(student_id=101, status=P, on_date=date(2026, 3, 6))
    record_factory(student_id=101, status=L, on_date=date(2026, 3, 6), session="Lab")
    record_factory(student_id=101, status=A, on_date=date(2026, 3, 9))

    trends = container.summary_service.get_attendance_trends(101, 1)

    weeks = trends["weeklyTrends"]
    assert [w["label"] for w in weeks] == ["2026-W10", "2026-W11"]
    assert weeks[0]["totalSessions"] == 2
    assert weeks[0]["attendancePercentage"] == 75.0
    assert weeks[1]["attendancePercentage"] == 0.0


def test_trends_respect_date_range(container, record_factory):
    record_factory(student_id=101, status=P, on_date=date(2026, 3, 6))
    record_factory(student_id=101, status=A, on_date=date(2026, 3, 9))

    trends = container.summary_service.get_attendance_trends(101, 1, start_date=date(2026, 3, 9))

    assert len(trends["weeklyTrends"]) == 1
    assert trends["dateRange"] == {"startDate": "2026-03-09", "endDate": None}


def test_school_analytics_breakdowns(container, record_factory):
    _seed(record_factory, 101, [P, P])
    _seed(record_factory, 102, [A, A], subject_id=2)
    container.summary_service.recalculate_all_summaries(1)

    analytics = container.summary_service.get_school_analytics(1)

    overall = analytics["overallStats"]
    assert overall["totalStudents"] == 2
    assert overall["totalSessions"] == 4
    assert overall["totalPresent"] == 2
    assert overall["averageAttendance"] == 50.0
    assert [row["subjectCode"] for row in analytics["subjectBreakdown"]] == ["DS101", "DB201"]
    assert analytics["classBreakdown"][0]["className"] == "CSE-A"

    lean = container.summary_service.get_school_analytics(1, include_class_breakdown=False, include_subject_breakdown=False)
    assert "classBreakdown" not in lean
    assert "subjectBreakdown" not in lean


def test_alerts_need_minimum_sessions(container, record_factory):
    _seed(record_factory, 101, [A, A, A, A])
    _seed(record_factory, 102, [P, A, A, A, A, A, A, A])
    _seed(record_factory, 103, [P, P, P, P, A, A, A, A])
    container.summary_service.recalculate_all_summaries(1)

    alerts = container.summary_service.get_low_attendance_alerts(1)

    assert [a["student"]["studentId"] for a in alerts] == [102, 103]
    assert alerts[0]["alertLevel"] == "critical"
    assert alerts[0]["attendancePercentage"] == 12.5
    assert alerts[1]["alertLevel"] == "warning"
    assert alerts[1]["subject"]["code"] == "DS101"


def test_alert_threshold_must_be_a_percentage(container):
    with pytest.raises(ValidationError):
        container.summary_service.get_low_attendance_alerts(1, threshold=0)
    with pytest.raises(ValidationError):
        container.summary_service.get_low_attendance_alerts(1, threshold=120)


@pytest.mark.parametrize(
    "percentage, expected",
    [(44.99, AlertLevel.CRITICAL), (45.0, AlertLevel.WARNING), (59.99, AlertLevel.WARNING), (60.0, AlertLevel.ATTENTION), (74.0, AlertLevel.ATTENTION)],
)
def test_alert_level_bands(percentage, expected):
    assert alert_level(percentage, 75.0) == expected
