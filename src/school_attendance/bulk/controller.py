from __future__ import annotations

from flask import Flask, g

from ..api.http import arg_datetime, json_body, ok
from ..auth.decorators import audit_info_from_request
from ..common.validators import optional_int, require_int, require_int_list
from ..container import Container
from ..core.enums import Role


def register(app: Flask, container: Container) -> None:
    auth_required = container.auth_required
    service = container.bulk_service

    @app.route("/api/attendance/bulk/validate-pattern", methods=["POST"], endpoint="api_bulk_validate_pattern")
    @auth_required(Role.ADMIN)
    def api_bulk_validate_pattern():
        data = json_body()
        preview = service.validate_pattern(
            data.get("pattern"),
            g.principal,
            target_class_id=optional_int(data.get("targetClassId"), "targetClassId"),
        )
        return ok(preview, f"Pattern matches {preview['matchCount']} students")

    @app.route("/api/attendance/bulk/assign-students", methods=["POST"], endpoint="api_bulk_assign_students")
    @auth_required(Role.ADMIN)
    def api_bulk_assign_students():
        data = json_body()
        result = service.assign_students_by_pattern(
            g.principal,
            pattern=data.get("pattern"),
            target_class_id=require_int(data.get("targetClassId"), "targetClassId"),
            subject_ids=require_int_list(data.get("subjectIds"), "subjectIds"),
            confirm=data.get("confirm") is True,
            audit_info=audit_info_from_request(),
        )
        return ok(result, f"Bulk assignment: {result['successCount']} succeeded, {result['failureCount']} failed")

    @app.route("/api/attendance/bulk/transfer", methods=["PUT"], endpoint="api_bulk_transfer")
    @auth_required(Role.ADMIN)
    def api_bulk_transfer():
        data = json_body()
        result = service.transfer_students(
            g.principal,
            student_ids=require_int_list(data.get("studentIds"), "studentIds"),
            from_class_id=require_int(data.get("fromClassId"), "fromClassId"),
            to_class_id=require_int(data.get("toClassId"), "toClassId"),
            subject_ids=require_int_list(data.get("subjectIds"), "subjectIds"),
            migrate_attendance=bool(data.get("migrateAttendance", False)),
            audit_info=audit_info_from_request(),
        )
        return ok(result, f"Transfer: {result['successCount']} succeeded, {result['failureCount']} failed")

    @app.route("/api/attendance/bulk/reassign-teacher", methods=["PUT"], endpoint="api_bulk_reassign_teacher")
    @auth_required(Role.ADMIN)
    def api_bulk_reassign_teacher():
        data = json_body()
        result = service.reassign_teacher(
            g.principal,
            teacher_id=require_int(data.get("teacherId"), "teacherId"),
            assignments=data.get("newAssignments") or [],
            audit_info=audit_info_from_request(),
        )
        return ok(result, "Teacher reassigned successfully")

    @app.route("/api/attendance/bulk/mark", methods=["POST"], endpoint="api_bulk_mark")
    @auth_required(Role.TEACHER, Role.ADMIN)
    def api_bulk_mark():
        data = json_body()
        result = container.attendance_service.mark_many_sessions(
            g.principal, data.get("sessions"), audit_info=audit_info_from_request()
        )
        return ok(result, f"Bulk marking: {result['successCount']} sessions succeeded, {result['failureCount']} failed")

    @app.route("/api/attendance/bulk/stats", methods=["GET"], endpoint="api_bulk_stats")
    @auth_required(Role.ADMIN)
    def api_bulk_stats():
        stats = service.get_bulk_operation_stats(
            g.principal, start=arg_datetime("startDate"), end=arg_datetime("endDate", end_of_day=True)
        )
        return ok(stats, "Bulk operation statistics retrieved successfully")
