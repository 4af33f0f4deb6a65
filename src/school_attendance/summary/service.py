from __future__ import annotations

import logging
from contextlib import nullcontext
from datetime import date, datetime
from typing import Callable, ContextManager, Iterable, Optional, Sequence

from ..attendance.model import AttendanceFilters, SummaryKey
from ..attendance.repository import AttendanceRepository
from ..common.datetime_utils import iso_week_key, now_local
from ..common.errors import storage_errors
from ..core.constants import (
    CRITICAL_ALERT_RATIO,
    DEFAULT_ATTENDANCE_THRESHOLD,
    MIN_SESSIONS_FOR_ALERT,
    WARNING_ALERT_RATIO,
)
from ..core.enums import AlertLevel, AttendanceStatus
from ..core.exceptions import NotFoundError, ValidationError
from ..school.repository import ClassRepository, StudentRepository
from .calculator.base import PercentageCalculator
from .calculator.lenient_calculator import LenientPercentageCalculator
from .calculator.standard_calculator import StandardPercentageCalculator
from .calculator.strict_calculator import StrictPercentageCalculator
from .model import AttendanceSummary
from .repository import SummaryRepository

logger = logging.getLogger(__name__)

_CLASS_SORT_KEYS = {
    "attendancePercentage": lambda row: row["attendancePercentage"],
    "totalSessions": lambda row: row["totalSessions"],
    "name": lambda row: (row.get("studentName") or "").lower(),
    "rollNum": lambda row: row.get("rollNum") or "",
}


def alert_level(percentage: float, threshold: float) -> AlertLevel:
    if percentage < threshold * CRITICAL_ALERT_RATIO:
        return AlertLevel.CRITICAL
    if percentage < threshold * WARNING_ALERT_RATIO:
        return AlertLevel.WARNING
    return AlertLevel.ATTENTION


class SummaryService:
    """Maintains AttendanceSummary rows and answers analytics queries.

    Every write path recomputes the summary from the full set of records
    for the (student, subject, class) key.
    """

    def __init__(
        self,
        summaries: SummaryRepository,
        attendance: AttendanceRepository,
        students: StudentRepository,
        classes: ClassRepository,
        *,
        calculators: Optional[Sequence[PercentageCalculator]] = None,
        clock: Callable[[], datetime] = now_local,
        unit_of_work: Callable[[], ContextManager] = nullcontext,
    ):
        self._summaries = summaries
        self._attendance = attendance
        self._students = students
        self._classes = classes
        self._calculators = list(
            calculators
            or (StandardPercentageCalculator(), StrictPercentageCalculator(), LenientPercentageCalculator())
        )
        self._standard = StandardPercentageCalculator()
        self._clock = clock
        self._unit_of_work = unit_of_work

    # ---- write side -------------------------------------------------

    def _school_id_for(self, student_id: int, class_id: int) -> int:
        student = self._students.get_by_id(student_id)
        if student:
            return student.school_id
        school_class = self._classes.get_class(class_id)
        if school_class:
            return school_class.school_id
        raise NotFoundError("Student not found", details={"studentId": student_id})

    def update_student_summary(self, student_id: int, subject_id: int, class_id: int) -> AttendanceSummary:
        with storage_errors("update attendance summary"):
            counts = self._attendance.count_by_status(
                student_id=int(student_id), subject_id=int(subject_id), class_id=int(class_id)
            )
            existing = self._summaries.get(student_id=int(student_id), subject_id=int(subject_id), class_id=int(class_id))
            school_id = existing.school_id if existing else self._school_id_for(int(student_id), int(class_id))
            summary = AttendanceSummary.from_counts(
                student_id=int(student_id),
                subject_id=int(subject_id),
                class_id=int(class_id),
                school_id=school_id,
                counts=counts,
                last_updated=self._clock(),
            )
            return self._summaries.save(summary)

    def initialize_student_summary(self, student_id: int, subject_id: int, class_id: int) -> AttendanceSummary:
        with storage_errors("initialize attendance summary"):
            existing = self._summaries.get(student_id=int(student_id), subject_id=int(subject_id), class_id=int(class_id))
            if existing:
                return existing
            return self._summaries.save(
                AttendanceSummary(
                    student_id=int(student_id),
                    subject_id=int(subject_id),
                    class_id=int(class_id),
                    school_id=self._school_id_for(int(student_id), int(class_id)),
                    last_updated=self._clock(),
                )
            )

    def _recalculate(self, keys: Iterable[SummaryKey]) -> dict:
        results = {"processed": 0, "updated": 0, "errors": 0, "errorDetails": []}
        for key in dict.fromkeys(keys):
            results["processed"] += 1
            try:
                with self._unit_of_work():
                    self.update_student_summary(key.student_id, key.subject_id, key.class_id)
                results["updated"] += 1
            except Exception as e:
                logger.warning("Summary recompute failed for %s: %s", key, e)
                results["errors"] += 1
                results["errorDetails"].append(
                    {
                        "combination": {"studentId": key.student_id, "subjectId": key.subject_id, "classId": key.class_id},
                        "error": str(e),
                    }
                )
        return results

    def bulk_update_summaries(self, class_id: int, subject_id: int) -> dict:
        """Rebuild every summary of a class/subject, enrolled students included."""

        keys = [
            SummaryKey(student_id=s.student_id, subject_id=int(subject_id), class_id=int(class_id))
            for s in self._students.list_by_class(int(class_id))
        ]
        keys.extend(self._attendance.list_summary_keys(class_id=int(class_id), subject_id=int(subject_id)))
        return self._recalculate(keys)

    def recalculate_all_summaries(self, school_id: int) -> dict:
        results = self._recalculate(self._attendance.list_summary_keys(school_id=int(school_id)))
        logger.info(
            "Recalculated summaries for school %s: %s processed, %s errors",
            school_id,
            results["processed"],
            results["errors"],
        )
        return results

    def trigger_summary_updates(self, records: Iterable) -> list[AttendanceSummary]:
        """Recompute summaries touched by a set of records.

        Accepts anything with student_id/subject_id/class_id. Duplicate keys
        are processed once; one failing key does not stop the others.
        """

        keys = dict.fromkeys(SummaryKey(r.student_id, r.subject_id, r.class_id) for r in records)
        updated: list[AttendanceSummary] = []
        for key in keys:
            try:
                updated.append(self.update_student_summary(key.student_id, key.subject_id, key.class_id))
            except Exception as e:
                logger.warning("Summary update failed for %s: %s", key, e)
        return updated

    # ---- read side --------------------------------------------------

    def calculated_percentages(self, summary: AttendanceSummary) -> dict[str, float]:
        return {c.name: c.percentage(summary) for c in self._calculators}

    def get_student_attendance_summary(
        self,
        student_id: int,
        *,
        subject_id: Optional[int] = None,
        class_id: Optional[int] = None,
    ) -> list[dict]:
        with storage_errors("get student attendance summary"):
            rows = []
            for s in self._summaries.list_for_student(int(student_id), subject_id=subject_id, class_id=class_id):
                subject = self._classes.get_subject(s.subject_id)
                school_class = self._classes.get_class(s.class_id)
                row = s.to_dict()
                row.update(
                    {
                        "subjectName": subject.name if subject else None,
                        "subjectCode": subject.code if subject else None,
                        "className": school_class.name if school_class else None,
                        "calculatedPercentages": self.calculated_percentages(s),
                    }
                )
                rows.append(row)
            return rows

    def get_class_attendance_summary(
        self,
        class_id: int,
        subject_id: int,
        *,
        sort_by: str = "attendancePercentage",
        sort_order: str = "desc",
    ) -> dict:
        if sort_by not in _CLASS_SORT_KEYS:
            raise ValidationError(f"Invalid sortBy: {sort_by}", details={"allowed": sorted(_CLASS_SORT_KEYS)})

        with storage_errors("get class attendance summary"):
            summaries = list(self._summaries.list_for_class(int(class_id), subject_id=int(subject_id)))
            students = {s.student_id: s for s in self._students.get_many([x.student_id for x in summaries])}

            rows = []
            for s in summaries:
                student = students.get(s.student_id)
                row = s.to_dict()
                row.update(
                    {
                        "studentName": student.name if student else None,
                        "rollNum": student.roll_num if student else None,
                        "calculatedPercentages": self.calculated_percentages(s),
                    }
                )
                rows.append(row)
            rows.sort(key=_CLASS_SORT_KEYS[sort_by], reverse=sort_order != "asc")

            return {
                "classId": int(class_id),
                "subjectId": int(subject_id),
                "students": rows,
                "statistics": self.class_statistics(summaries),
            }

    @staticmethod
    def class_statistics(
        summaries: Sequence[AttendanceSummary], *, threshold: float = DEFAULT_ATTENDANCE_THRESHOLD
    ) -> dict:
        percentages = [s.attendance_percentage for s in summaries]
        if not percentages:
            return {
                "averageAttendance": 0,
                "highestAttendance": 0,
                "lowestAttendance": 0,
                "studentsAboveThreshold": 0,
                "studentsBelowThreshold": 0,
                "threshold": threshold,
            }
        return {
            "averageAttendance": round(sum(percentages) / len(percentages), 2),
            "highestAttendance": max(percentages),
            "lowestAttendance": min(percentages),
            "studentsAboveThreshold": len([p for p in percentages if p >= threshold]),
            "studentsBelowThreshold": len([p for p in percentages if p < threshold]),
            "threshold": threshold,
        }

    def get_attendance_trends(
        self,
        student_id: int,
        subject_id: int,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> dict:
        with storage_errors("get attendance trends"):
            records, _ = self._attendance.search(
                AttendanceFilters(
                    student_id=int(student_id),
                    subject_id=int(subject_id),
                    start_date=start_date,
                    end_date=end_date,
                ),
                sort_by="date",
                sort_order="asc",
            )

        buckets: dict[tuple[int, int], dict[AttendanceStatus, int]] = {}
        for r in records:
            year, week, _ = r.date.isocalendar()
            counts = buckets.setdefault((year, week), {s: 0 for s in AttendanceStatus})
            counts[r.status] += 1

        weekly = []
        for (year, week), counts in sorted(buckets.items()):
            summary = AttendanceSummary.from_counts(
                student_id=int(student_id),
                subject_id=int(subject_id),
                class_id=0,
                school_id=0,
                counts=counts,
                last_updated=self._clock(),
            )
            weekly.append(
                {
                    "year": year,
                    "week": week,
                    "label": iso_week_key(date.fromisocalendar(year, week, 1)),
                    "totalSessions": summary.total_sessions,
                    "presentCount": summary.present_count,
                    "absentCount": summary.absent_count,
                    "lateCount": summary.late_count,
                    "excusedCount": summary.excused_count,
                    "attendancePercentage": self._standard.percentage(summary),
                }
            )

        return {
            "studentId": int(student_id),
            "subjectId": int(subject_id),
            "weeklyTrends": weekly,
            "dateRange": {
                "startDate": start_date.isoformat() if start_date else None,
                "endDate": end_date.isoformat() if end_date else None,
            },
        }

    def _aggregate(self, summaries: Sequence[AttendanceSummary]) -> dict:
        totals = AttendanceSummary(
            student_id=0,
            subject_id=0,
            class_id=0,
            school_id=0,
            total_sessions=sum(s.total_sessions for s in summaries),
            present_count=sum(s.present_count for s in summaries),
            absent_count=sum(s.absent_count for s in summaries),
            late_count=sum(s.late_count for s in summaries),
            excused_count=sum(s.excused_count for s in summaries),
        )
        percentages = [s.attendance_percentage for s in summaries]
        return {
            "totalStudents": len({s.student_id for s in summaries}),
            "totalSessions": totals.total_sessions,
            "totalPresent": totals.present_count,
            "totalAbsent": totals.absent_count,
            "totalLate": totals.late_count,
            "totalExcused": totals.excused_count,
            "averageAttendance": round(sum(percentages) / len(percentages), 2) if percentages else 0,
            "highestAttendance": max(percentages) if percentages else 0,
            "lowestAttendance": min(percentages) if percentages else 0,
            "attendanceRate": self._standard.percentage(totals),
        }

    def get_school_analytics(
        self,
        school_id: int,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        include_class_breakdown: bool = True,
        include_subject_breakdown: bool = True,
    ) -> dict:
        result: dict = {
            "schoolId": int(school_id),
            "dateRange": {
                "startDate": start_date.isoformat() if start_date else None,
                "endDate": end_date.isoformat() if end_date else None,
            },
        }

        with storage_errors("get school analytics"):
            summaries: list[AttendanceSummary] = list(self._summaries.list_for_school(int(school_id)))
            if start_date or end_date:
                _, in_range = self._attendance.search(
                    AttendanceFilters(school_id=int(school_id), start_date=start_date, end_date=end_date),
                    limit=1,
                )
                if in_range == 0:
                    summaries = []

            result["overallStats"] = self._aggregate(summaries)

            if include_class_breakdown:
                by_class: dict[int, list[AttendanceSummary]] = {}
                for s in summaries:
                    by_class.setdefault(s.class_id, []).append(s)
                breakdown = []
                for class_id, items in by_class.items():
                    school_class = self._classes.get_class(class_id)
                    row = {"classId": class_id, "className": school_class.name if school_class else None}
                    row.update(self._aggregate(items))
                    breakdown.append(row)
                breakdown.sort(key=lambda r: r["averageAttendance"], reverse=True)
                result["classBreakdown"] = breakdown

            if include_subject_breakdown:
                by_subject: dict[int, list[AttendanceSummary]] = {}
                for s in summaries:
                    by_subject.setdefault(s.subject_id, []).append(s)
                breakdown = []
                for subject_id, items in by_subject.items():
                    subject = self._classes.get_subject(subject_id)
                    row = {
                        "subjectId": subject_id,
                        "subjectName": subject.name if subject else None,
                        "subjectCode": subject.code if subject else None,
                    }
                    row.update(self._aggregate(items))
                    breakdown.append(row)
                breakdown.sort(key=lambda r: r["averageAttendance"], reverse=True)
                result["subjectBreakdown"] = breakdown

        return result

    def get_low_attendance_alerts(
        self,
        class_id: int,
        *,
        subject_id: Optional[int] = None,
        threshold: float = DEFAULT_ATTENDANCE_THRESHOLD,
    ) -> list[dict]:
        if threshold <= 0 or threshold > 100:
            raise ValidationError("threshold must be between 0 and 100")

        with storage_errors("get low attendance alerts"):
            low = [
                s
                for s in self._summaries.list_for_class(int(class_id), subject_id=subject_id)
                if s.attendance_percentage < threshold and s.total_sessions >= MIN_SESSIONS_FOR_ALERT
            ]
            low.sort(key=lambda s: s.attendance_percentage)
            students = {s.student_id: s for s in self._students.get_many([x.student_id for x in low])}

            alerts = []
            for s in low:
                student = students.get(s.student_id)
                subject = self._classes.get_subject(s.subject_id)
                alerts.append(
                    {
                        "student": {
                            "studentId": s.student_id,
                            "name": student.name if student else None,
                            "rollNum": student.roll_num if student else None,
                        },
                        "subject": {
                            "subjectId": s.subject_id,
                            "name": subject.name if subject else None,
                            "code": subject.code if subject else None,
                        },
                        "attendancePercentage": s.attendance_percentage,
                        "totalSessions": s.total_sessions,
                        "presentCount": s.present_count,
                        "absentCount": s.absent_count,
                        "alertLevel": alert_level(s.attendance_percentage, threshold).value,
                    }
                )
            return alerts
