from __future__ import annotations

import logging
from contextlib import nullcontext
from datetime import date, datetime
from typing import Any, Callable, ContextManager, Optional, Sequence, Union

from ..audit.model import AuditInfo
from ..audit.service import AuditService
from ..common.datetime_utils import coerce_date, now_local
from ..common.errors import storage_errors
from ..common.validators import require_non_empty
from ..core.constants import MAX_PAGE_LIMIT, MAX_REASON_LENGTH, SORTABLE_RECORD_FIELDS
from ..core.enums import AttendanceStatus, AuditAction
from ..core.exceptions import (
    AttendanceAlreadyMarkedError,
    AttendanceAuthorizationError,
    AuthorizationError,
    BulkOperationError,
    DomainError,
    NotFoundError,
    ValidationError,
)
from ..core.principal import AdminPrincipal, Principal, StudentPrincipal, TeacherPrincipal
from ..school.repository import ClassRepository, StudentRepository, TeacherRepository
from ..sessions.service import SessionService
from ..summary.service import SummaryService
from .model import AttendanceFilters, AttendanceRecord, BulkMarkResult, PageOptions, RecordPage, StudentMark
from .repository import AttendanceRepository
from .validation import ValidationService

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({"status", "session", "date"})


def _roll_sort_key(roll_num: str) -> tuple:
    roll = (roll_num or "").strip()
    return (0, int(roll), "") if roll.isdigit() else (1, 0, roll)


class AttendanceService:
    """Single entry point for reading and mutating attendance records."""

    def __init__(
        self,
        attendance: AttendanceRepository,
        validation: ValidationService,
        summaries: SummaryService,
        audit: AuditService,
        students: StudentRepository,
        teachers: TeacherRepository,
        classes: ClassRepository,
        sessions: SessionService,
        *,
        clock: Callable[[], datetime] = now_local,
        unit_of_work: Callable[[], ContextManager] = nullcontext,
        strict_once: bool = False,
    ):
        self._attendance = attendance
        self._validation = validation
        self._summaries = summaries
        self._audit = audit
        self._students = students
        self._teachers = teachers
        self._classes = classes
        self._sessions = sessions
        self._clock = clock
        self._unit_of_work = unit_of_work
        self._strict_once = strict_once

    # ---- roster -----------------------------------------------------

    def get_class_students_for_attendance(self, class_id: int, subject_id: int, principal: Principal) -> list[dict]:
        with storage_errors("get class students"):
            self._validation.validate_teacher_assignment(principal, class_id, subject_id)
            students = list(self._students.list_by_class(int(class_id)))
        if not students:
            raise NotFoundError("No students found in this class", details={"classId": class_id})

        students.sort(key=lambda s: _roll_sort_key(s.roll_num))
        return [{"studentId": s.student_id, "name": s.name, "rollNum": s.roll_num} for s in students]

    # ---- marking ----------------------------------------------------

    def bulk_mark_attendance(
        self,
        principal: Principal,
        *,
        class_id: int,
        subject_id: int,
        date: Union[str, date],
        session: str,
        student_attendance: Sequence[Any],
        audit_info: Optional[AuditInfo] = None,
    ) -> BulkMarkResult:
        """Mark one session for many students.

        Batch-level checks run once and abort before any write. After that
        each student is written in its own unit of work, and a failure is
        reported in ``failed`` without touching the other students.
        """

        with storage_errors("mark attendance"):
            school_class = self._validation.validate_teacher_assignment(principal, class_id, subject_id)
            session = self._validation.validate_session_configuration(class_id, subject_id, session)
            on_date = self._validation.validate_date_range(date)
            marks = self._validation.validate_bulk_attendance_data(student_attendance)

        result = BulkMarkResult()
        for mark in marks:
            try:
                with storage_errors("mark attendance"):
                    with self._unit_of_work():
                        record, action = self._mark_one(
                            principal,
                            mark,
                            class_id=int(class_id),
                            subject_id=int(subject_id),
                            on_date=on_date,
                            session=session,
                            school_id=school_class.school_id,
                            audit_info=audit_info,
                        )
                result.successful.append(
                    {
                        "studentId": mark.student_id,
                        "recordId": record.record_id,
                        "status": record.status.value,
                        "action": action.value,
                    }
                )
            except DomainError as e:
                logger.warning("Attendance not marked for student %s: %s", mark.student_id, e.message)
                result.failed.append({"studentId": mark.student_id, "status": mark.status.value, "error": e.message})

        logger.info(
            "Marked class=%s subject=%s date=%s session=%s: %s ok, %s failed",
            class_id,
            subject_id,
            on_date.isoformat(),
            session,
            len(result.successful),
            len(result.failed),
        )
        return result

    def _mark_one(
        self,
        principal: Principal,
        mark: StudentMark,
        *,
        class_id: int,
        subject_id: int,
        on_date: date,
        session: str,
        school_id: int,
        audit_info: Optional[AuditInfo],
    ) -> tuple[AttendanceRecord, AuditAction]:
        self._validation.validate_student_enrollment(mark.student_id, class_id)

        existing = self._attendance.get_by_key(
            student_id=mark.student_id,
            class_id=class_id,
            subject_id=subject_id,
            on_date=on_date,
            session=session,
            for_update=True,
        )
        if existing and self._strict_once:
            raise AttendanceAlreadyMarkedError(
                "Attendance already marked for this student and session",
                details={"recordId": existing.record_id},
            )

        record, created = self._attendance.upsert(
            student_id=mark.student_id,
            class_id=class_id,
            subject_id=subject_id,
            on_date=on_date,
            session=session,
            status=mark.status,
            teacher_id=principal.teacher_id if isinstance(principal, TeacherPrincipal) else None,
            actor_id=principal.user_id,
            actor_role=principal.role,
            school_id=school_id,
            now=self._clock(),
        )
        action = AuditAction.CREATE if created else AuditAction.UPDATE

        self._audit.record(
            action,
            principal,
            school_id=school_id,
            record_id=record.record_id,
            old_values=existing.to_dict() if existing and not created else None,
            new_values=record.to_dict(),
            audit_info=audit_info,
        )
        self._summaries.update_student_summary(record.student_id, record.subject_id, record.class_id)
        return record, action

    def mark_many_sessions(
        self,
        principal: Principal,
        sessions: Sequence[dict],
        *,
        audit_info: Optional[AuditInfo] = None,
    ) -> dict:
        """Apply bulk_mark_attendance to several sessions.

        A session whose batch-level validation fails is reported on its own;
        only when every session fails is BulkOperationError raised.
        """

        if not isinstance(sessions, (list, tuple)) or not sessions:
            raise ValidationError("sessions must be a non-empty list")

        done: list[dict] = []
        failures: list[dict] = []
        for index, group in enumerate(sessions):
            group = group if isinstance(group, dict) else {}
            ident = {
                "index": index,
                "classId": group.get("classId"),
                "subjectId": group.get("subjectId"),
                "date": group.get("date"),
                "session": group.get("session"),
            }
            try:
                if group.get("classId") in (None, "") or group.get("subjectId") in (None, ""):
                    raise ValidationError("classId and subjectId are required")
                result = self.bulk_mark_attendance(
                    principal,
                    class_id=int(group["classId"]),
                    subject_id=int(group["subjectId"]),
                    date=group.get("date"),
                    session=group.get("session") or "",
                    student_attendance=group.get("studentAttendance") or [],
                    audit_info=audit_info,
                )
                done.append({**ident, **result.to_dict()})
            except (DomainError, TypeError, ValueError) as e:
                failures.append({**ident, "error": getattr(e, "message", str(e))})

        if not done:
            raise BulkOperationError(
                "No session could be marked",
                operation="bulk_mark",
                success_count=0,
                failure_count=len(failures),
                failures=failures,
            )
        return {
            "sessions": done,
            "failedSessions": failures,
            "successCount": len(done),
            "failureCount": len(failures),
        }

    # ---- single record ----------------------------------------------

    def update_attendance(
        self,
        record_id: int,
        update_data: dict,
        principal: Principal,
        *,
        audit_info: Optional[AuditInfo] = None,
    ) -> AttendanceRecord:
        if not isinstance(update_data, dict) or not update_data:
            raise ValidationError("No fields to update")
        unknown = sorted(set(update_data) - UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(
                f"Fields cannot be updated: {', '.join(unknown)}",
                details={"allowed": sorted(UPDATABLE_FIELDS)},
            )

        with storage_errors("update attendance"):
            record = self._attendance.get_by_id(int(record_id))
            if not record:
                raise NotFoundError("Attendance record not found", details={"recordId": record_id})

            self._validation.validate_teacher_assignment(principal, record.class_id, record.subject_id)

            status = (
                self._validation.validate_attendance_status(update_data["status"])
                if "status" in update_data
                else record.status
            )
            session = record.session
            if "session" in update_data and update_data["session"] != record.session:
                session = self._validation.validate_session_configuration(
                    record.class_id, record.subject_id, update_data["session"]
                )
            on_date = self._validation.validate_date_range(update_data["date"]) if "date" in update_data else record.date

            with self._unit_of_work():
                updated = self._attendance.update_fields(
                    record.record_id,
                    status=status,
                    session=session,
                    on_date=on_date,
                    modified_by=principal.user_id,
                    modified_at=self._clock(),
                )
                if not updated:
                    raise NotFoundError("Attendance record not found", details={"recordId": record_id})

                self._audit.record(
                    AuditAction.UPDATE,
                    principal,
                    school_id=record.school_id,
                    record_id=record.record_id,
                    old_values=record.to_dict(),
                    new_values=updated.to_dict(),
                    audit_info=audit_info,
                )
                if updated.status != record.status:
                    self._summaries.update_student_summary(updated.student_id, updated.subject_id, updated.class_id)

        logger.info("Attendance record %s updated by %s:%s", record_id, principal.role.value, principal.user_id)
        return updated

    def delete_attendance(
        self,
        record_id: int,
        principal: Principal,
        reason: Optional[str],
        *,
        audit_info: Optional[AuditInfo] = None,
    ) -> AttendanceRecord:
        if not isinstance(principal, AdminPrincipal):
            raise AuthorizationError("Only admins can delete attendance records")
        reason = require_non_empty(reason, "reason")
        if len(reason) > MAX_REASON_LENGTH:
            raise ValidationError(
                f"reason must be at most {MAX_REASON_LENGTH} characters",
                details={"field": "reason", "length": len(reason)},
            )

        with storage_errors("delete attendance"):
            record = self._attendance.get_by_id(int(record_id))
            if not record or record.school_id != principal.school_id:
                raise NotFoundError("Attendance record not found", details={"recordId": record_id})

            with self._unit_of_work():
                self._audit.record(
                    AuditAction.DELETE,
                    principal,
                    school_id=record.school_id,
                    record_id=record.record_id,
                    old_values=record.to_dict(),
                    new_values=None,
                    reason=reason,
                    audit_info=audit_info,
                )
                self._attendance.delete(record.record_id)
                self._summaries.update_student_summary(record.student_id, record.subject_id, record.class_id)

        logger.info("Attendance record %s deleted by admin %s: %s", record_id, principal.admin_id, reason)
        return record

    # ---- reads ------------------------------------------------------

    def get_attendance_by_filters(
        self,
        filters: AttendanceFilters,
        options: PageOptions,
        principal: Principal,
    ) -> RecordPage:
        if options.page < 1:
            raise ValidationError("page must be >= 1")
        if options.limit < 1 or options.limit > MAX_PAGE_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_LIMIT}")
        if options.sort_by not in SORTABLE_RECORD_FIELDS:
            raise ValidationError(
                f"Invalid sortBy: {options.sort_by}", details={"allowed": list(SORTABLE_RECORD_FIELDS)}
            )
        if options.sort_order not in ("asc", "desc"):
            raise ValidationError("sortOrder must be 'asc' or 'desc'")
        if filters.start_date and filters.end_date and filters.start_date > filters.end_date:
            raise ValidationError("startDate must not be after endDate")

        scoped = self._scope_filters(filters, principal)
        with storage_errors("get attendance records"):
            records, total = self._attendance.search(
                scoped,
                sort_by=options.sort_by,
                sort_order=options.sort_order,
                offset=options.offset,
                limit=options.limit,
            )
            rows = self._expand(records) if options.expand else [r.to_dict() for r in records]
        return RecordPage(records=rows, current_page=options.page, limit=options.limit, total_records=total)

    def _scope_filters(self, filters: AttendanceFilters, principal: Principal) -> AttendanceFilters:
        self._validation.require_read_access(principal, student_id=filters.student_id, school_id=filters.school_id)
        student_id = principal.student_id if isinstance(principal, StudentPrincipal) else filters.student_id
        return AttendanceFilters(
            class_id=filters.class_id,
            subject_id=filters.subject_id,
            teacher_id=filters.teacher_id,
            student_id=student_id,
            start_date=filters.start_date,
            end_date=filters.end_date,
            status=filters.status,
            session=filters.session,
            school_id=principal.school_id,
        )

    def _expand(self, records: Sequence[AttendanceRecord]) -> list[dict]:
        students = {s.student_id: s for s in self._students.get_many(sorted({r.student_id for r in records}))}
        teachers: dict[int, Any] = {}
        subjects: dict[int, Any] = {}
        classes: dict[int, Any] = {}

        rows = []
        for r in records:
            if r.teacher_id is not None and r.teacher_id not in teachers:
                teachers[r.teacher_id] = self._teachers.get_by_id(r.teacher_id)
            if r.subject_id not in subjects:
                subjects[r.subject_id] = self._classes.get_subject(r.subject_id)
            if r.class_id not in classes:
                classes[r.class_id] = self._classes.get_class(r.class_id)

            student = students.get(r.student_id)
            teacher = teachers.get(r.teacher_id) if r.teacher_id is not None else None
            subject = subjects.get(r.subject_id)
            school_class = classes.get(r.class_id)

            row = r.to_dict()
            row["student"] = {"name": student.name, "rollNum": student.roll_num} if student else None
            row["teacher"] = {"name": teacher.name} if teacher else None
            row["subject"] = {"name": subject.name, "code": subject.code} if subject else None
            row["class"] = {"name": school_class.name} if school_class else None
            rows.append(row)
        return rows

    def get_session_summary(
        self,
        class_id: int,
        subject_id: int,
        on_date: Union[str, date],
        session: str,
        principal: Optional[Principal] = None,
    ) -> dict:
        try:
            parsed = coerce_date(on_date)
        except ValueError:
            raise ValidationError("Invalid date, expected YYYY-MM-DD", details={"date": on_date})
        if parsed is None:
            raise ValidationError("date is required")
        if not session:
            raise ValidationError("session is required")

        with storage_errors("get session summary"):
            if principal is not None:
                school_class = self._validation.get_class(class_id)
                self._validation.require_read_access(principal, school_id=school_class.school_id)
            records = self._attendance.list_for_session(
                class_id=int(class_id), subject_id=int(subject_id), on_date=parsed, session=session
            )

        summary: dict[str, Any] = {s.value: 0 for s in AttendanceStatus}
        details: dict[str, list[int]] = {s.value: [] for s in AttendanceStatus}
        for r in records:
            summary[r.status.value] += 1
            details[r.status.value].append(r.student_id)
        summary["total"] = sum(summary[s.value] for s in AttendanceStatus)
        summary["details"] = details
        return summary

    def get_session_options(self, class_id: int, subject_id: int, principal: Principal) -> list[dict]:
        with storage_errors("get session options"):
            school_class = self._validation.get_class(class_id)
            self._validation.require_read_access(principal, school_id=school_class.school_id)
            return [o.to_dict() for o in self._sessions.get_session_options(int(class_id), int(subject_id))]

    def get_record(self, record_id: int, principal: Principal) -> AttendanceRecord:
        with storage_errors("get attendance record"):
            record = self._attendance.get_by_id(int(record_id))
        if not record or record.school_id != principal.school_id:
            raise NotFoundError("Attendance record not found", details={"recordId": record_id})
        if isinstance(principal, StudentPrincipal) and record.student_id != principal.student_id:
            raise AttendanceAuthorizationError("Students can only view their own attendance")
        return record
