from __future__ import annotations

import csv
import io

from flask import Flask, g

from ..api.http import arg_date, arg_int
from ..container import Container
from ..core.enums import Role
from ..core.exceptions import ValidationError
from .service import ReportData

REPORT_FIELDS = [
    "date",
    "session",
    "class_name",
    "subject_code",
    "subject_name",
    "student_id",
    "roll_num",
    "student_name",
    "status",
]


def register(app: Flask, container: Container) -> None:
    auth_required = container.auth_required

    def _write_report_csv(*, data: ReportData, filename: str):
        out = io.StringIO()
        writer = csv.DictWriter(out, fieldnames=REPORT_FIELDS)
        writer.writeheader()
        for row in data.rows:
            writer.writerow(row)

        csv_bytes = out.getvalue().encode("utf-8-sig")
        return app.response_class(
            csv_bytes,
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )

    @app.route("/api/attendance/reports/export.csv", methods=["GET"], endpoint="api_reports_export")
    @auth_required(Role.TEACHER, Role.ADMIN)
    def api_reports_export():
        start = arg_date("startDate")
        end = arg_date("endDate")
        if not start or not end:
            raise ValidationError("startDate and endDate are required")

        class_id = arg_int("classId", required=True)
        data = container.report_service.build_attendance_report(
            g.principal,
            class_id=class_id,
            subject_id=arg_int("subjectId"),
            start=start,
            end=end,
        )
        filename = f"attendance_{class_id}_{start:%Y%m%d}_{end:%Y%m%d}.csv"
        return _write_report_csv(data=data, filename=filename)
