from __future__ import annotations

from contextlib import nullcontext
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, ContextManager, Optional

from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.repository import AttendanceRepository
from .attendance.service import AttendanceService
from .attendance.validation import DateWindow, ValidationService
from .audit.mysql_audit_repository import MySQLAuditLogRepository
from .audit.repository import AuditLogRepository
from .audit.service import AuditService
from .auth.decorators import make_auth_required
from .auth.service import AuthService
from .auth.tokens import TokenCodec
from .bulk.service import BulkManagementService
from .common.datetime_utils import now_local
from .core.constants import DEFAULT_JWT_EXPIRE_MINUTES, DEFAULT_MAX_BATCH_SIZE
from .database.connection import DBConfig, DatabaseConnection
from .reports.service import AttendanceReportService
from .school.mysql_admin_repository import MySQLAdminRepository
from .school.mysql_class_repository import MySQLClassRepository
from .school.mysql_student_repository import MySQLStudentRepository
from .school.mysql_teacher_repository import MySQLTeacherRepository
from .school.repository import AdminRepository, ClassRepository, StudentRepository, TeacherRepository
from .sessions.mysql_session_repository import MySQLSessionConfigurationRepository
from .sessions.repository import SessionConfigurationRepository
from .sessions.service import SessionService
from .summary.mysql_summary_repository import MySQLSummaryRepository
from .summary.repository import SummaryRepository
from .summary.service import SummaryService


@dataclass(frozen=True)
class Repositories:
    admins: AdminRepository
    students: StudentRepository
    teachers: TeacherRepository
    classes: ClassRepository
    session_configs: SessionConfigurationRepository
    attendance: AttendanceRepository
    summaries: SummaryRepository
    audit_logs: AuditLogRepository


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]
    repos: Repositories

    session_service: SessionService
    validation_service: ValidationService
    audit_service: AuditService
    summary_service: SummaryService
    attendance_service: AttendanceService
    bulk_service: BulkManagementService
    auth_service: AuthService
    report_service: AttendanceReportService

    auth_required: Callable[..., Any]


def wire_container(
    repos: Repositories,
    *,
    tokens: TokenCodec,
    conn: Optional[DatabaseConnection] = None,
    unit_of_work: Callable[[], ContextManager] = nullcontext,
    clock: Callable[[], datetime] = now_local,
    date_window: DateWindow = DateWindow(),
    allow_default_sessions: bool = False,
    strict_once: bool = False,
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
) -> Container:
    """Build every service on top of a given set of repositories."""

    session_service = SessionService(repos.session_configs)
    validation_service = ValidationService(
        repos.teachers,
        repos.students,
        repos.classes,
        session_service,
        date_window=date_window,
        allow_default_sessions=allow_default_sessions,
        max_batch_size=max_batch_size,
        clock=clock,
    )
    audit_service = AuditService(repos.audit_logs, clock=clock)
    summary_service = SummaryService(
        repos.summaries,
        repos.attendance,
        repos.students,
        repos.classes,
        clock=clock,
        unit_of_work=unit_of_work,
    )
    attendance_service = AttendanceService(
        repos.attendance,
        validation_service,
        summary_service,
        audit_service,
        repos.students,
        repos.teachers,
        repos.classes,
        session_service,
        clock=clock,
        unit_of_work=unit_of_work,
        strict_once=strict_once,
    )
    bulk_service = BulkManagementService(
        repos.students,
        repos.teachers,
        repos.classes,
        repos.attendance,
        summary_service,
        audit_service,
        unit_of_work=unit_of_work,
    )
    auth_service = AuthService(repos.admins, repos.teachers, repos.students, tokens)
    report_service = AttendanceReportService(repos.attendance, repos.students, repos.classes, validation_service)

    return Container(
        conn=conn,
        repos=repos,
        session_service=session_service,
        validation_service=validation_service,
        audit_service=audit_service,
        summary_service=summary_service,
        attendance_service=attendance_service,
        bulk_service=bulk_service,
        auth_service=auth_service,
        report_service=report_service,
        auth_required=make_auth_required(auth_service),
    )


def build_container(
    *,
    db_config: dict,
    jwt_secret: str,
    jwt_expire_minutes: int = DEFAULT_JWT_EXPIRE_MINUTES,
    **options: Any,
) -> Container:
    config = DBConfig(
        host=str(db_config["host"]),
        port=int(db_config.get("port", 3306)),
        user=str(db_config["user"]),
        password=str(db_config["password"]),
        database=str(db_config["database"]),
    )
    conn = DatabaseConnection(config)

    repos = Repositories(
        admins=MySQLAdminRepository(conn),
        students=MySQLStudentRepository(conn),
        teachers=MySQLTeacherRepository(conn),
        classes=MySQLClassRepository(conn),
        session_configs=MySQLSessionConfigurationRepository(conn),
        attendance=MySQLAttendanceRepository(conn),
        summaries=MySQLSummaryRepository(conn),
        audit_logs=MySQLAuditLogRepository(conn),
    )

    return wire_container(
        repos,
        tokens=TokenCodec(jwt_secret, expire_minutes=jwt_expire_minutes),
        conn=conn,
        unit_of_work=conn.transaction,
        **options,
    )
