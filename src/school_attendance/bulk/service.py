from __future__ import annotations

import logging
import re
from contextlib import nullcontext
from datetime import datetime
from typing import Any, Callable, ContextManager, Optional, Sequence

from ..attendance.repository import AttendanceRepository
from ..audit.model import AuditInfo
from ..audit.service import AuditService
from ..common.errors import storage_errors
from ..common.validators import require_non_empty
from ..core.enums import AuditAction
from ..core.exceptions import AuthorizationError, DomainError, NotFoundError, ValidationError
from ..core.principal import AdminPrincipal, Principal
from ..school.model import SchoolClass, Student
from ..school.repository import ClassRepository, StudentRepository, TeacherRepository
from ..summary.service import SummaryService

logger = logging.getLogger(__name__)

BULK_STAT_ACTIONS = [AuditAction.BULK_ASSIGN, AuditAction.STUDENT_TRANSFER, AuditAction.TEACHER_REASSIGNMENT]


def pattern_to_regex(pattern: str) -> re.Pattern:
    """Compile a university-id wildcard: '*' matches any run, the rest is literal."""

    escaped = re.escape(pattern).replace(r"\*", ".*")
    return re.compile(f"^{escaped}$", re.IGNORECASE)


def _require_admin(principal: Principal) -> AdminPrincipal:
    if not isinstance(principal, AdminPrincipal):
        raise AuthorizationError("Only admins can perform bulk operations")
    return principal


class BulkManagementService:
    """Admin roster operations: pattern assignment, transfers, reassignment.

    Every student is committed in its own unit of work so one failure does
    not undo the others.
    """

    def __init__(
        self,
        students: StudentRepository,
        teachers: TeacherRepository,
        classes: ClassRepository,
        attendance: AttendanceRepository,
        summaries: SummaryService,
        audit: AuditService,
        *,
        unit_of_work: Callable[[], ContextManager] = nullcontext,
    ):
        self._students = students
        self._teachers = teachers
        self._classes = classes
        self._attendance = attendance
        self._summaries = summaries
        self._audit = audit
        self._unit_of_work = unit_of_work

    def _school_class(self, class_id: int, school_id: int, label: str = "Class") -> SchoolClass:
        school_class = self._classes.get_class(int(class_id))
        if not school_class or school_class.school_id != school_id:
            raise NotFoundError(f"{label} not found", details={"classId": class_id})
        return school_class

    def _check_subjects(self, subject_ids: Sequence[int], school_id: int) -> None:
        missing = []
        for subject_id in subject_ids:
            subject = self._classes.get_subject(int(subject_id))
            if not subject or subject.school_id != school_id:
                missing.append(subject_id)
        if missing:
            raise NotFoundError("One or more subjects not found", details={"subjectIds": missing})

    def find_students_by_pattern(self, pattern: str, school_id: int) -> list[Student]:
        pattern = require_non_empty(pattern, "pattern")
        students = self._students.list_by_school(int(school_id))
        if pattern == "*":
            matched = list(students)
        else:
            regex = pattern_to_regex(pattern)
            matched = [s for s in students if regex.match(s.university_id or "")]
        return sorted(matched, key=lambda s: (s.university_id, s.roll_num))

    def validate_pattern(self, pattern: str, principal: Principal, *, target_class_id: Optional[int] = None) -> dict:
        """Preview which students a pattern would touch. Writes nothing."""

        admin = _require_admin(principal)
        with storage_errors("validate pattern"):
            if target_class_id is not None:
                self._school_class(target_class_id, admin.school_id, "Target class")
            matches = self.find_students_by_pattern(pattern, admin.school_id)

        conflicts = [
            {"studentId": s.student_id, "universityId": s.university_id, "reason": "Already in target class"}
            for s in matches
            if target_class_id is not None and s.class_id == int(target_class_id)
        ]
        return {
            "pattern": pattern,
            "matchCount": len(matches),
            "matches": [
                {
                    "studentId": s.student_id,
                    "name": s.name,
                    "rollNum": s.roll_num,
                    "universityId": s.university_id,
                    "currentClassId": s.class_id,
                }
                for s in matches
            ],
            "conflicts": conflicts,
        }

    def assign_students_by_pattern(
        self,
        principal: Principal,
        *,
        pattern: str,
        target_class_id: int,
        subject_ids: Sequence[int] = (),
        confirm: bool = False,
        audit_info: Optional[AuditInfo] = None,
    ) -> dict:
        admin = _require_admin(principal)
        if confirm is not True:
            raise ValidationError("Bulk assignment requires explicit confirmation (confirm=true)")

        with storage_errors("assign students by pattern"):
            target = self._school_class(target_class_id, admin.school_id, "Target class")
            self._check_subjects(subject_ids, admin.school_id)
            matches = self.find_students_by_pattern(pattern, admin.school_id)

        results: dict[str, Any] = {"successful": [], "failed": []}
        for student in matches:
            if student.class_id == target.class_id:
                results["failed"].append(
                    {
                        "studentId": student.student_id,
                        "universityId": student.university_id,
                        "name": student.name,
                        "error": "Student already assigned to target class",
                    }
                )
                continue
            try:
                with storage_errors("assign student"):
                    with self._unit_of_work():
                        self._assign_one(admin, student, target, subject_ids, pattern, audit_info)
                results["successful"].append(
                    {
                        "studentId": student.student_id,
                        "universityId": student.university_id,
                        "name": student.name,
                        "previousClassId": student.class_id,
                        "newClassId": target.class_id,
                    }
                )
            except DomainError as e:
                logger.warning("Bulk assign failed for student %s: %s", student.student_id, e.message)
                results["failed"].append(
                    {
                        "studentId": student.student_id,
                        "universityId": student.university_id,
                        "name": student.name,
                        "error": e.message,
                    }
                )

        results.update(
            {
                "totalProcessed": len(matches),
                "successCount": len(results["successful"]),
                "failureCount": len(results["failed"]),
            }
        )
        if not matches:
            results["message"] = "No students found matching the specified pattern"
        logger.info(
            "Bulk assign '%s' -> class %s: %s ok, %s failed",
            pattern,
            target.class_id,
            results["successCount"],
            results["failureCount"],
        )
        return results

    def _assign_one(
        self,
        admin: AdminPrincipal,
        student: Student,
        target: SchoolClass,
        subject_ids: Sequence[int],
        pattern: str,
        audit_info: Optional[AuditInfo],
    ) -> None:
        old_subjects = list(self._students.list_subject_ids(student.student_id))
        self._students.set_class(student.student_id, target.class_id)
        new_subjects = old_subjects
        if subject_ids:
            new_subjects = [int(s) for s in subject_ids]
            self._students.replace_subjects(student.student_id, new_subjects)

        self._audit.record(
            AuditAction.BULK_ASSIGN,
            admin,
            school_id=admin.school_id,
            old_values={"classId": student.class_id, "enrolledSubjects": old_subjects},
            new_values={"classId": target.class_id, "enrolledSubjects": new_subjects},
            reason=f"Bulk assignment using pattern: {pattern}",
            audit_info=audit_info,
            metadata={"studentId": student.student_id, "universityId": student.university_id, "pattern": pattern},
        )
        for subject_id in subject_ids:
            self._summaries.initialize_student_summary(student.student_id, int(subject_id), target.class_id)

    def transfer_students(
        self,
        principal: Principal,
        *,
        student_ids: Sequence[int],
        from_class_id: int,
        to_class_id: int,
        subject_ids: Sequence[int] = (),
        migrate_attendance: bool = False,
        audit_info: Optional[AuditInfo] = None,
    ) -> dict:
        admin = _require_admin(principal)
        if not student_ids:
            raise ValidationError("studentIds must be a non-empty list")
        if int(from_class_id) == int(to_class_id):
            raise ValidationError("Source and target class must differ")

        with storage_errors("transfer students"):
            source = self._school_class(from_class_id, admin.school_id, "Source class")
            target = self._school_class(to_class_id, admin.school_id, "Target class")
            self._check_subjects(subject_ids, admin.school_id)
            wanted = [int(x) for x in dict.fromkeys(student_ids)]
            students = [s for s in self._students.get_many(wanted) if s.class_id == source.class_id]
            if len(students) != len(wanted):
                found = {s.student_id for s in students}
                raise ValidationError(
                    "Some students not found or not in the specified source class",
                    details={"studentIds": [x for x in wanted if x not in found]},
                )

        results: dict[str, Any] = {"successful": [], "failed": []}
        for student in students:
            try:
                with storage_errors("transfer student"):
                    with self._unit_of_work():
                        migrated = self._transfer_one(
                            admin, student, source, target, subject_ids, migrate_attendance, audit_info
                        )
                results["successful"].append(
                    {
                        "studentId": student.student_id,
                        "name": student.name,
                        "fromClass": source.class_id,
                        "toClass": target.class_id,
                        "migratedRecords": migrated,
                        "newSubjects": [int(s) for s in subject_ids],
                    }
                )
            except DomainError as e:
                logger.warning("Transfer failed for student %s: %s", student.student_id, e.message)
                results["failed"].append({"studentId": student.student_id, "name": student.name, "error": e.message})

        results.update(
            {
                "totalProcessed": len(students),
                "successCount": len(results["successful"]),
                "failureCount": len(results["failed"]),
            }
        )
        return results

    def _transfer_one(
        self,
        admin: AdminPrincipal,
        student: Student,
        source: SchoolClass,
        target: SchoolClass,
        subject_ids: Sequence[int],
        migrate_attendance: bool,
        audit_info: Optional[AuditInfo],
    ) -> int:
        old_subjects = list(self._students.list_subject_ids(student.student_id))
        self._students.set_class(student.student_id, target.class_id)
        new_subjects = old_subjects
        if subject_ids:
            new_subjects = [int(s) for s in subject_ids]
            self._students.replace_subjects(student.student_id, new_subjects)

        migrated = 0
        if migrate_attendance:
            migrated = self._migrate_attendance(admin, student, source, target, audit_info)

        for subject_id in subject_ids:
            self._summaries.initialize_student_summary(student.student_id, int(subject_id), target.class_id)

        self._audit.record(
            AuditAction.STUDENT_TRANSFER,
            admin,
            school_id=student.school_id,
            old_values={"classId": source.class_id, "enrolledSubjects": old_subjects},
            new_values={"classId": target.class_id, "enrolledSubjects": new_subjects},
            reason=f"Student transfer from {source.name} to {target.name}",
            audit_info=audit_info,
            metadata={"studentId": student.student_id, "migratedAttendanceRecords": migrated},
        )
        return migrated

    def _migrate_attendance(
        self,
        admin: AdminPrincipal,
        student: Student,
        source: SchoolClass,
        target: SchoolClass,
        audit_info: Optional[AuditInfo],
    ) -> int:
        records = list(self._attendance.list_for_student_class(student_id=student.student_id, class_id=source.class_id))
        for record in records:
            moved = self._attendance.move_to_class(record.record_id, target.class_id)
            self._audit.record(
                AuditAction.MIGRATE_ATTENDANCE,
                admin,
                school_id=record.school_id,
                record_id=record.record_id,
                old_values=record.to_dict(),
                new_values=moved.to_dict() if moved else None,
                reason=f"Attendance migrated from {source.name} to {target.name}",
                audit_info=audit_info,
                metadata={"studentId": student.student_id, "fromClassId": source.class_id, "toClassId": target.class_id},
            )

        # Both classes lose/gain records: rebuild every affected key.
        for subject_id in dict.fromkeys(r.subject_id for r in records):
            self._summaries.update_student_summary(student.student_id, subject_id, source.class_id)
            self._summaries.update_student_summary(student.student_id, subject_id, target.class_id)
        return len(records)

    def reassign_teacher(
        self,
        principal: Principal,
        *,
        teacher_id: int,
        assignments: Sequence[dict],
        audit_info: Optional[AuditInfo] = None,
    ) -> dict:
        admin = _require_admin(principal)
        if not isinstance(assignments, (list, tuple)):
            raise ValidationError("newAssignments must be a list")

        with storage_errors("reassign teacher"):
            teacher = self._teachers.get_by_id(int(teacher_id))
            if not teacher or teacher.school_id != admin.school_id:
                raise NotFoundError("Teacher not found", details={"teacherId": teacher_id})

            pairs: list[tuple[int, int]] = []
            for item in assignments:
                try:
                    class_id, subject_id = int(item["classId"]), int(item["subjectId"])
                except (KeyError, TypeError, ValueError):
                    raise ValidationError("Each assignment needs classId and subjectId", details={"assignment": item})
                self._school_class(class_id, admin.school_id)
                self._check_subjects([subject_id], admin.school_id)
                pairs.append((class_id, subject_id))

            old = [{"classId": a.class_id, "subjectId": a.subject_id} for a in self._teachers.list_assignments(teacher.teacher_id)]
            new = [{"classId": c, "subjectId": s} for c, s in dict.fromkeys(pairs)]

            with self._unit_of_work():
                self._teachers.replace_assignments(teacher.teacher_id, pairs)
                self._audit.record(
                    AuditAction.TEACHER_REASSIGNMENT,
                    admin,
                    school_id=teacher.school_id,
                    old_values={"assignments": old},
                    new_values={"assignments": new},
                    reason="Teacher subject/class reassignment",
                    audit_info=audit_info,
                    metadata={"teacherId": teacher.teacher_id, "assignmentCount": len(new)},
                )

        logger.info("Teacher %s reassigned to %s class/subject pairs", teacher.teacher_id, len(new))
        return {
            "teacherId": teacher.teacher_id,
            "teacherName": teacher.name,
            "oldAssignments": old,
            "newAssignments": new,
            "success": True,
        }

    def get_bulk_operation_stats(
        self,
        principal: Principal,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> dict:
        admin = _require_admin(principal)
        with storage_errors("get bulk operation stats"):
            counts, last = self._audit.count_actions(admin.school_id, BULK_STAT_ACTIONS, start=start, end=end)
        return {
            "bulkAssignments": counts[AuditAction.BULK_ASSIGN],
            "studentTransfers": counts[AuditAction.STUDENT_TRANSFER],
            "teacherReassignments": counts[AuditAction.TEACHER_REASSIGNMENT],
            "totalOperations": sum(counts.values()),
            "lastActivity": last.isoformat() if last else None,
        }
