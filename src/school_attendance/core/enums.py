from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Roles carried by an authenticated principal."""

    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


class AttendanceStatus(str, Enum):
    """Attendance status stored on a record."""

    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EXCUSED = "excused"


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    BULK_ASSIGN = "bulk_assign"
    STUDENT_TRANSFER = "student_transfer"
    TEACHER_REASSIGNMENT = "teacher_reassignment"
    MIGRATE_ATTENDANCE = "migrate_attendance"


class SessionType(str, Enum):
    LECTURE = "lecture"
    LAB = "lab"
    TUTORIAL = "tutorial"


class AlertLevel(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    ATTENTION = "attention"
