from __future__ import annotations

from flask import Flask

from ..api.http import json_body, ok
from ..common.validators import optional_int
from ..container import Container


def register(app: Flask, container: Container) -> None:
    @app.route("/api/auth/login", methods=["POST"], endpoint="api_auth_login")
    def api_auth_login():
        data = json_body()
        result = container.auth_service.login(
            data.get("role", ""),
            data.get("identifier") or data.get("email") or data.get("universityId") or "",
            data.get("password", ""),
            school_id=optional_int(data.get("schoolId"), "schoolId"),
        )
        return ok(result, "Login successful")
