from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable, Optional, Sequence, Union

from ..common.datetime_utils import coerce_date, now_local
from ..core.constants import DEFAULT_MAX_BATCH_SIZE
from ..core.enums import AttendanceStatus
from ..core.exceptions import (
    AttendanceAuthorizationError,
    InvalidSessionError,
    NotFoundError,
    StudentNotEnrolledError,
    ValidationError,
)
from ..core.principal import AdminPrincipal, Principal, StudentPrincipal, TeacherPrincipal
from ..school.model import SchoolClass, Student, Subject
from ..school.repository import ClassRepository, StudentRepository, TeacherRepository
from ..sessions.service import SessionService
from .model import StudentMark


@dataclass(frozen=True)
class DateWindow:
    """How far from today an attendance date may be. None means unbounded."""

    max_past_days: Optional[int] = None
    max_future_days: Optional[int] = None


class ValidationService:
    """Pure checks against reference data.

    Nothing is cached: every call reads the repositories again so a revoked
    assignment takes effect on the next request.
    """

    def __init__(
        self,
        teachers: TeacherRepository,
        students: StudentRepository,
        classes: ClassRepository,
        sessions: SessionService,
        *,
        date_window: DateWindow = DateWindow(),
        allow_default_sessions: bool = False,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
        clock: Callable[[], datetime] = now_local,
    ):
        self._teachers = teachers
        self._students = students
        self._classes = classes
        self._sessions = sessions
        self._date_window = date_window
        self._allow_default_sessions = allow_default_sessions
        self._max_batch_size = int(max_batch_size)
        self._clock = clock

    def get_class(self, class_id: int) -> SchoolClass:
        school_class = self._classes.get_class(int(class_id))
        if not school_class:
            raise NotFoundError("Class not found", details={"classId": class_id})
        return school_class

    def get_subject(self, subject_id: int) -> Subject:
        subject = self._classes.get_subject(int(subject_id))
        if not subject:
            raise NotFoundError("Subject not found", details={"subjectId": subject_id})
        return subject

    def validate_teacher_assignment(self, principal: Principal, class_id: int, subject_id: int) -> SchoolClass:
        """Single decision point for "may this actor write attendance here"."""

        school_class = self.get_class(class_id)
        subject = self.get_subject(subject_id)

        if isinstance(principal, AdminPrincipal):
            if school_class.school_id != principal.school_id or subject.school_id != principal.school_id:
                raise AttendanceAuthorizationError(
                    "Class or subject does not belong to your school",
                    details={"classId": class_id, "subjectId": subject_id},
                )
            return school_class

        if isinstance(principal, TeacherPrincipal):
            if not self._teachers.has_assignment(principal.teacher_id, int(class_id), int(subject_id)):
                raise AttendanceAuthorizationError(
                    "Teacher is not assigned to this class and subject",
                    details={"teacherId": principal.teacher_id, "classId": class_id, "subjectId": subject_id},
                )
            return school_class

        raise AttendanceAuthorizationError("Students cannot mark attendance")

    def validate_session_configuration(self, class_id: int, subject_id: int, session: str) -> str:
        session = (session or "").strip()
        if not session:
            raise InvalidSessionError("Session is required")

        valid = self._sessions.valid_session_names(
            int(class_id), int(subject_id), allow_defaults=self._allow_default_sessions
        )
        if valid is None:
            raise InvalidSessionError(
                "No session configuration found for this class and subject",
                details={"classId": class_id, "subjectId": subject_id},
            )
        if session not in valid:
            raise InvalidSessionError(
                f"Invalid session '{session}'",
                details={"session": session, "validSessions": valid},
            )
        return session

    def validate_date_range(self, value: Union[str, date, None]) -> date:
        try:
            parsed = coerce_date(value)
        except (TypeError, ValueError):
            raise ValidationError("Invalid date, expected YYYY-MM-DD", details={"date": value})
        if parsed is None:
            raise ValidationError("Date is required")

        today = self._clock().date()
        window = self._date_window
        if window.max_past_days is not None and parsed < today - timedelta(days=window.max_past_days):
            raise ValidationError(
                f"Cannot mark attendance more than {window.max_past_days} days in the past",
                details={"date": parsed.isoformat()},
            )
        if window.max_future_days is not None and parsed > today + timedelta(days=window.max_future_days):
            raise ValidationError(
                "Cannot mark attendance for future dates"
                if window.max_future_days == 0
                else f"Cannot mark attendance more than {window.max_future_days} days ahead",
                details={"date": parsed.isoformat()},
            )
        return parsed

    def validate_student_enrollment(self, student_id: int, class_id: int) -> Student:
        student = self._students.get_by_id(int(student_id))
        if not student:
            raise NotFoundError("Student not found", details={"studentId": student_id})
        if student.class_id != int(class_id):
            raise StudentNotEnrolledError(
                "Student is not enrolled in this class",
                details={"studentId": student_id, "classId": class_id},
            )
        return student

    def validate_attendance_status(self, value: Any) -> AttendanceStatus:
        try:
            return AttendanceStatus(str(value).strip().lower())
        except ValueError:
            raise ValidationError(
                f"Invalid status '{value}'",
                details={"allowed": [s.value for s in AttendanceStatus]},
            )

    def validate_bulk_attendance_data(self, entries: Sequence[Any]) -> list[StudentMark]:
        """Shape check for a batch; does not touch the store."""

        if not isinstance(entries, (list, tuple)) or not entries:
            raise ValidationError("studentAttendance must be a non-empty list")
        if len(entries) > self._max_batch_size:
            raise ValidationError(
                f"Batch too large: {len(entries)} entries (max {self._max_batch_size})",
                details={"maxBatchSize": self._max_batch_size},
            )

        marks: list[StudentMark] = []
        for index, entry in enumerate(entries):
            if isinstance(entry, StudentMark):
                marks.append(entry)
                continue
            if not isinstance(entry, dict) or entry.get("studentId") in (None, ""):
                raise ValidationError(f"Entry {index} is missing studentId", details={"index": index})
            try:
                student_id = int(entry["studentId"])
            except (TypeError, ValueError):
                raise ValidationError(f"Entry {index} has an invalid studentId", details={"index": index})
            marks.append(StudentMark(student_id=student_id, status=self.validate_attendance_status(entry.get("status"))))
        return marks

    def require_read_access(self, principal: Principal, *, student_id: Optional[int] = None, school_id: Optional[int] = None) -> None:
        """Read-side gate: students see only themselves, everyone stays in their school."""

        if isinstance(principal, StudentPrincipal) and student_id is not None and int(student_id) != principal.student_id:
            raise AttendanceAuthorizationError("Students can only view their own attendance")
        if school_id is not None and int(school_id) != principal.school_id:
            raise AttendanceAuthorizationError("Resource belongs to another school")
