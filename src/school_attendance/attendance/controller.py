from __future__ import annotations

from flask import Flask, g, request

from ..api.http import arg_bool, arg_date, arg_int, json_body, ok
from ..auth.decorators import audit_info_from_request
from ..common.validators import require_int
from ..container import Container
from ..core.constants import DEFAULT_PAGE, DEFAULT_PAGE_LIMIT, DEFAULT_SORT_BY, DEFAULT_SORT_ORDER
from ..core.enums import Role
from ..core.exceptions import ValidationError
from .model import AttendanceFilters, PageOptions


def register(app: Flask, container: Container) -> None:
    auth_required = container.auth_required
    service = container.attendance_service

    @app.route("/api/attendance/mark", methods=["POST"], endpoint="api_attendance_mark")
    @auth_required(Role.TEACHER, Role.ADMIN)
    def api_attendance_mark():
        data = json_body()
        result = service.bulk_mark_attendance(
            g.principal,
            class_id=require_int(data.get("classId"), "classId"),
            subject_id=require_int(data.get("subjectId"), "subjectId"),
            date=data.get("date"),
            session=data.get("session") or "",
            student_attendance=data.get("studentAttendance"),
            audit_info=audit_info_from_request(),
        )
        return ok(result.to_dict(), f"Attendance processed: {len(result.successful)} succeeded, {len(result.failed)} failed")

    @app.route("/api/attendance/class/<int:class_id>/students", methods=["GET"], endpoint="api_attendance_class_students")
    @auth_required(Role.TEACHER, Role.ADMIN)
    def api_attendance_class_students(class_id: int):
        subject_id = arg_int("subjectId", required=True)
        students = service.get_class_students_for_attendance(class_id, subject_id, g.principal)
        return ok(students, "Students retrieved successfully")

    @app.route("/api/attendance/records", methods=["GET"], endpoint="api_attendance_records")
    @auth_required()
    def api_attendance_records():
        status = request.args.get("status")
        filters = AttendanceFilters(
            class_id=arg_int("classId"),
            subject_id=arg_int("subjectId"),
            teacher_id=arg_int("teacherId"),
            student_id=arg_int("studentId"),
            start_date=arg_date("startDate"),
            end_date=arg_date("endDate"),
            status=container.validation_service.validate_attendance_status(status) if status else None,
            session=request.args.get("session") or None,
            school_id=arg_int("schoolId"),
        )
        options = PageOptions(
            page=arg_int("page") or DEFAULT_PAGE,
            limit=arg_int("limit") or DEFAULT_PAGE_LIMIT,
            sort_by=request.args.get("sortBy") or DEFAULT_SORT_BY,
            sort_order=(request.args.get("sortOrder") or DEFAULT_SORT_ORDER).lower(),
            expand=arg_bool("expand", default=True),
        )
        page = service.get_attendance_by_filters(filters, options, g.principal)
        return ok(page.to_dict(), "Attendance records retrieved successfully")

    @app.route("/api/attendance/<int:record_id>", methods=["GET"], endpoint="api_attendance_get")
    @auth_required()
    def api_attendance_get(record_id: int):
        return ok(service.get_record(record_id, g.principal).to_dict())

    @app.route("/api/attendance/<int:record_id>", methods=["PUT"], endpoint="api_attendance_update")
    @auth_required(Role.TEACHER, Role.ADMIN)
    def api_attendance_update(record_id: int):
        record = service.update_attendance(record_id, json_body(), g.principal, audit_info=audit_info_from_request())
        return ok(record.to_dict(), "Attendance updated successfully")

    @app.route("/api/attendance/<int:record_id>", methods=["DELETE"], endpoint="api_attendance_delete")
    @auth_required(Role.ADMIN)
    def api_attendance_delete(record_id: int):
        data = json_body()
        record = service.delete_attendance(
            record_id, g.principal, data.get("reason"), audit_info=audit_info_from_request()
        )
        return ok({"recordId": record.record_id}, "Attendance record deleted successfully")

    @app.route(
        "/api/attendance/session-summary/<int:class_id>/<int:subject_id>",
        methods=["GET"],
        endpoint="api_attendance_session_summary",
    )
    @auth_required(Role.TEACHER, Role.ADMIN)
    def api_attendance_session_summary(class_id: int, subject_id: int):
        on_date = request.args.get("date")
        session = request.args.get("session")
        if not on_date or not session:
            raise ValidationError("date and session are required")
        summary = service.get_session_summary(class_id, subject_id, on_date, session, g.principal)
        return ok(summary, "Session summary retrieved successfully")

    @app.route("/api/attendance/session-options", methods=["GET"], endpoint="api_attendance_session_options")
    @auth_required(Role.TEACHER, Role.ADMIN)
    def api_attendance_session_options():
        options = service.get_session_options(
            arg_int("classId", required=True), arg_int("subjectId", required=True), g.principal
        )
        return ok(options, "Session options retrieved successfully")
