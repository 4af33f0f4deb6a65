from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from ..attendance.model import AttendanceFilters
from ..attendance.repository import AttendanceRepository
from ..attendance.validation import ValidationService
from ..common.errors import storage_errors
from ..core.enums import AttendanceStatus
from ..core.exceptions import ValidationError
from ..core.principal import Principal
from ..school.repository import ClassRepository, StudentRepository
from ..summary.calculator.base import PercentageCalculator
from ..summary.calculator.standard_calculator import StandardPercentageCalculator
from ..summary.model import AttendanceSummary


@dataclass(frozen=True)
class ReportData:
    rows: list[dict]
    summary: list[dict]


class AttendanceReportService:
    """Flat attendance rows plus per-student totals for CSV export."""

    def __init__(
        self,
        attendance: AttendanceRepository,
        students: StudentRepository,
        classes: ClassRepository,
        validation: ValidationService,
        *,
        calculator: Optional[PercentageCalculator] = None,
    ):
        self._attendance = attendance
        self._students = students
        self._classes = classes
        self._validation = validation
        self._calculator = calculator or StandardPercentageCalculator()

    def build_attendance_report(
        self,
        principal: Principal,
        *,
        class_id: int,
        start: date,
        end: date,
        subject_id: Optional[int] = None,
    ) -> ReportData:
        if start > end:
            raise ValidationError("startDate must not be after endDate")

        with storage_errors("build attendance report"):
            school_class = self._validation.get_class(class_id)
            self._validation.require_read_access(principal, school_id=school_class.school_id)
            records, _ = self._attendance.search(
                AttendanceFilters(
                    class_id=int(class_id),
                    subject_id=subject_id,
                    start_date=start,
                    end_date=end,
                    school_id=school_class.school_id,
                ),
                sort_by="date",
                sort_order="asc",
            )
            students = {s.student_id: s for s in self._students.get_many(sorted({r.student_id for r in records}))}
            subjects = {sid: self._classes.get_subject(sid) for sid in {r.subject_id for r in records}}

        out_rows: list[dict] = []
        counts: dict[int, dict[AttendanceStatus, int]] = {}
        for r in records:
            student = students.get(r.student_id)
            subject = subjects.get(r.subject_id)
            out_rows.append(
                {
                    "date": r.date.strftime("%Y-%m-%d"),
                    "session": r.session,
                    "class_name": school_class.name,
                    "subject_code": subject.code if subject else "-",
                    "subject_name": subject.name if subject else "-",
                    "student_id": r.student_id,
                    "roll_num": student.roll_num if student else "-",
                    "student_name": student.name if student else "-",
                    "status": r.status.value,
                }
            )
            per_student = counts.setdefault(r.student_id, {s: 0 for s in AttendanceStatus})
            per_student[r.status] += 1

        summary = []
        for student_id, status_counts in counts.items():
            totals = AttendanceSummary.from_counts(
                student_id=student_id,
                subject_id=subject_id or 0,
                class_id=school_class.class_id,
                school_id=school_class.school_id,
                counts=status_counts,
                last_updated=None,
            )
            student = students.get(student_id)
            summary.append(
                {
                    "student_id": student_id,
                    "roll_num": student.roll_num if student else "-",
                    "student_name": student.name if student else "-",
                    "total_sessions": totals.total_sessions,
                    "present": totals.present_count,
                    "absent": totals.absent_count,
                    "late": totals.late_count,
                    "excused": totals.excused_count,
                    "attendance_percentage": totals.attendance_percentage,
                    "weighted_percentage": self._calculator.percentage(totals),
                }
            )
        summary.sort(key=lambda s: s["roll_num"])
        return ReportData(rows=out_rows, summary=summary)
