from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ..core.enums import AttendanceStatus


@dataclass(frozen=True)
class AttendanceSummary:
    """Derived per-student, per-subject, per-class counters.

    Always rebuilt from the full record set; never patched incrementally.
    """

    student_id: int
    subject_id: int
    class_id: int
    school_id: int
    total_sessions: int = 0
    present_count: int = 0
    absent_count: int = 0
    late_count: int = 0
    excused_count: int = 0
    attendance_percentage: float = 0.0
    last_updated: Optional[datetime] = None
    summary_id: Optional[int] = None

    @classmethod
    def from_counts(
        cls,
        *,
        student_id: int,
        subject_id: int,
        class_id: int,
        school_id: int,
        counts: dict[AttendanceStatus, int],
        last_updated: Optional[datetime],
    ) -> "AttendanceSummary":
        present = int(counts.get(AttendanceStatus.PRESENT, 0))
        total = sum(int(v) for v in counts.values())
        return cls(
            student_id=student_id,
            subject_id=subject_id,
            class_id=class_id,
            school_id=school_id,
            total_sessions=total,
            present_count=present,
            absent_count=int(counts.get(AttendanceStatus.ABSENT, 0)),
            late_count=int(counts.get(AttendanceStatus.LATE, 0)),
            excused_count=int(counts.get(AttendanceStatus.EXCUSED, 0)),
            attendance_percentage=round(present / total * 100, 2) if total else 0.0,
            last_updated=last_updated,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "studentId": self.student_id,
            "subjectId": self.subject_id,
            "classId": self.class_id,
            "schoolId": self.school_id,
            "totalSessions": self.total_sessions,
            "presentCount": self.present_count,
            "absentCount": self.absent_count,
            "lateCount": self.late_count,
            "excusedCount": self.excused_count,
            "attendancePercentage": self.attendance_percentage,
            "lastUpdated": self.last_updated.isoformat() if self.last_updated else None,
        }
