from __future__ import annotations

from flask import Flask, g, request

from ..api.http import arg_bool, arg_date, arg_int, ok
from ..container import Container
from ..core.constants import DEFAULT_ATTENDANCE_THRESHOLD
from ..core.enums import Role
from ..core.exceptions import NotFoundError, ValidationError


def register(app: Flask, container: Container) -> None:
    auth_required = container.auth_required
    service = container.summary_service
    validation = container.validation_service

    def _check_student_access(student_id: int) -> None:
        student = container.repos.students.get_by_id(student_id)
        if not student:
            raise NotFoundError("Student not found", details={"studentId": student_id})
        validation.require_read_access(g.principal, student_id=student_id, school_id=student.school_id)

    def _check_class_access(class_id: int) -> None:
        school_class = validation.get_class(class_id)
        validation.require_read_access(g.principal, school_id=school_class.school_id)

    @app.route("/api/attendance/summary/student/<int:student_id>", methods=["GET"], endpoint="api_summary_student")
    @auth_required()
    def api_summary_student(student_id: int):
        _check_student_access(student_id)
        rows = service.get_student_attendance_summary(
            student_id, subject_id=arg_int("subjectId"), class_id=arg_int("classId")
        )
        return ok(rows, "Student attendance summary retrieved successfully")

    @app.route(
        "/api/attendance/summary/class/<int:class_id>/subject/<int:subject_id>",
        methods=["GET"],
        endpoint="api_summary_class",
    )
    @auth_required(Role.TEACHER, Role.ADMIN)
    def api_summary_class(class_id: int, subject_id: int):
        _check_class_access(class_id)
        result = service.get_class_attendance_summary(
            class_id,
            subject_id,
            sort_by=request.args.get("sortBy") or "attendancePercentage",
            sort_order=(request.args.get("sortOrder") or "desc").lower(),
        )
        return ok(result, "Class attendance summary retrieved successfully")

    @app.route(
        "/api/attendance/analytics/trends/<int:student_id>/<int:subject_id>",
        methods=["GET"],
        endpoint="api_analytics_trends",
    )
    @auth_required()
    def api_analytics_trends(student_id: int, subject_id: int):
        _check_student_access(student_id)
        trends = service.get_attendance_trends(
            student_id, subject_id, start_date=arg_date("startDate"), end_date=arg_date("endDate")
        )
        return ok(trends, "Attendance trends retrieved successfully")

    @app.route("/api/attendance/analytics/school/<int:school_id>", methods=["GET"], endpoint="api_analytics_school")
    @auth_required(Role.ADMIN)
    def api_analytics_school(school_id: int):
        validation.require_read_access(g.principal, school_id=school_id)
        analytics = service.get_school_analytics(
            school_id,
            start_date=arg_date("startDate"),
            end_date=arg_date("endDate"),
            include_class_breakdown=arg_bool("includeClassBreakdown", default=True),
            include_subject_breakdown=arg_bool("includeSubjectBreakdown", default=True),
        )
        return ok(analytics, "School analytics retrieved successfully")

    @app.route("/api/attendance/analytics/alerts/<int:class_id>", methods=["GET"], endpoint="api_analytics_alerts")
    @auth_required(Role.TEACHER, Role.ADMIN)
    def api_analytics_alerts(class_id: int):
        _check_class_access(class_id)
        raw = request.args.get("threshold")
        try:
            threshold = float(raw) if raw else DEFAULT_ATTENDANCE_THRESHOLD
        except ValueError:
            raise ValidationError("threshold must be a number")
        alerts = service.get_low_attendance_alerts(class_id, subject_id=arg_int("subjectId"), threshold=threshold)
        return ok(alerts, f"Found {len(alerts)} students with low attendance")

    @app.route("/api/attendance/summary/recalculate", methods=["POST"], endpoint="api_summary_recalculate")
    @auth_required(Role.ADMIN)
    def api_summary_recalculate():
        results = service.recalculate_all_summaries(g.principal.school_id)
        return ok(results, "Summaries recalculated")
