from __future__ import annotations

from flask import Flask, g, request

from ..api.http import arg_datetime, arg_int, ok
from ..container import Container
from ..core.constants import DEFAULT_AUDIT_HISTORY_LIMIT, DEFAULT_USER_ACTIVITY_LIMIT
from ..core.enums import Role
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from ..core.principal import AdminPrincipal


def register(app: Flask, container: Container) -> None:
    auth_required = container.auth_required
    service = container.audit_service

    @app.route("/api/attendance/audit/record/<int:record_id>", methods=["GET"], endpoint="api_audit_record")
    @auth_required(Role.TEACHER, Role.ADMIN)
    def api_audit_record(record_id: int):
        history = [
            e
            for e in service.get_record_history(record_id, limit=arg_int("limit") or DEFAULT_AUDIT_HISTORY_LIMIT)
            if e.school_id == g.principal.school_id
        ]
        if not history:
            raise NotFoundError("No audit history for this record", details={"recordId": record_id})
        return ok([e.to_dict() for e in history], "Audit history retrieved successfully")

    @app.route("/api/attendance/audit/user/<int:user_id>", methods=["GET"], endpoint="api_audit_user")
    @auth_required(Role.TEACHER, Role.ADMIN)
    def api_audit_user(user_id: int):
        role = _activity_role()
        if not isinstance(g.principal, AdminPrincipal) and (user_id, role) != (g.principal.user_id, g.principal.role):
            raise AuthorizationError("You can only view your own activity")
        entries = service.get_user_activity(
            user_id,
            role,
            school_id=g.principal.school_id,
            start=arg_datetime("startDate"),
            end=arg_datetime("endDate", end_of_day=True),
            limit=arg_int("limit") or DEFAULT_USER_ACTIVITY_LIMIT,
        )
        return ok([e.to_dict() for e in entries], "User activity retrieved successfully")

    @app.route("/api/attendance/audit/summary", methods=["GET"], endpoint="api_audit_summary")
    @auth_required(Role.ADMIN)
    def api_audit_summary():
        summary = service.get_school_audit_summary(
            g.principal.school_id,
            start=arg_datetime("startDate"),
            end=arg_datetime("endDate", end_of_day=True),
        )
        return ok(summary, "Audit summary retrieved successfully")


def _activity_role() -> Role:
    """Role the requested user id belongs to; defaults to the caller's own."""

    value = request.args.get("role")
    if not value:
        return g.principal.role
    try:
        return Role(value.strip().lower())
    except ValueError:
        raise ValidationError("role must be one of admin, teacher, student", details={"role": value})
