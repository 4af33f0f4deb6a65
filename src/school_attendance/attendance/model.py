from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional

from ..core.enums import AttendanceStatus, Role


@dataclass(frozen=True)
class AttendanceRecord:
    """One student's status for one (class, subject, date, session)."""

    record_id: int
    class_id: int
    subject_id: int
    teacher_id: Optional[int]
    student_id: int
    date: date
    session: str
    status: AttendanceStatus
    marked_by: int
    marked_by_role: Role
    marked_at: datetime
    school_id: int
    last_modified_by: Optional[int] = None
    last_modified_at: Optional[datetime] = None

    @property
    def natural_key(self) -> tuple[int, int, int, date, str]:
        return (self.student_id, self.class_id, self.subject_id, self.date, self.session)

    def to_dict(self) -> dict[str, Any]:
        return {
            "recordId": self.record_id,
            "classId": self.class_id,
            "subjectId": self.subject_id,
            "teacherId": self.teacher_id,
            "studentId": self.student_id,
            "date": self.date.isoformat(),
            "session": self.session,
            "status": self.status.value,
            "markedBy": self.marked_by,
            "markedByRole": self.marked_by_role.value,
            "markedAt": self.marked_at.isoformat() if self.marked_at else None,
            "lastModifiedBy": self.last_modified_by,
            "lastModifiedAt": self.last_modified_at.isoformat() if self.last_modified_at else None,
            "schoolId": self.school_id,
        }


@dataclass(frozen=True)
class StudentMark:
    student_id: int
    status: AttendanceStatus


@dataclass
class BulkMarkResult:
    successful: list[dict] = field(default_factory=list)
    failed: list[dict] = field(default_factory=list)

    @property
    def total_processed(self) -> int:
        return len(self.successful) + len(self.failed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "successful": list(self.successful),
            "failed": list(self.failed),
            "totalProcessed": self.total_processed,
            "successCount": len(self.successful),
            "failureCount": len(self.failed),
        }


@dataclass(frozen=True)
class AttendanceFilters:
    class_id: Optional[int] = None
    subject_id: Optional[int] = None
    teacher_id: Optional[int] = None
    student_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[AttendanceStatus] = None
    session: Optional[str] = None
    school_id: Optional[int] = None


@dataclass(frozen=True)
class PageOptions:
    page: int = 1
    limit: int = 50
    sort_by: str = "date"
    sort_order: str = "desc"
    expand: bool = True

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class RecordPage:
    records: list[dict]
    current_page: int
    limit: int
    total_records: int

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return (self.total_records + self.limit - 1) // self.limit

    def to_dict(self) -> dict[str, Any]:
        return {
            "records": self.records,
            "pagination": {
                "currentPage": self.current_page,
                "totalPages": self.total_pages,
                "totalRecords": self.total_records,
                "hasNextPage": self.current_page < self.total_pages,
                "hasPrevPage": self.current_page > 1,
            },
        }


@dataclass(frozen=True)
class SummaryKey:
    student_id: int
    subject_id: int
    class_id: int
