from __future__ import annotations

from datetime import date, timedelta

from flask import Flask, request

from ..common.access import current_role, current_user_id, roles_required
from ..common.datetime_utils import parse_iso_date
from ..common.responses import ok
from ..core.constants import DEFAULT_REPORT_DAYS
from ..core.enums import AttendanceStatus, Role
from ..core.exceptions import ValidationError
from ..container import Container
from .service import AttendanceReportService


def register(app: Flask, container: Container) -> None:
    reports = container.report_service

    def _build_from_args():
        today = date.today()
        start = parse_iso_date(request.args["start"]) if request.args.get("start") else today - timedelta(days=DEFAULT_REPORT_DAYS)
        end = parse_iso_date(request.args["end"]) if request.args.get("end") else today

        class_id = request.args.get("class_id")
        student_id = request.args.get("student_id")
        status = request.args.get("status")
        try:
            status_filter = AttendanceStatus(status) if status else None
        except ValueError:
            raise ValidationError("status is invalid")

        data = reports.build_report(
            start=start,
            end=end,
            class_id=int(class_id) if class_id and class_id.isdigit() else None,
            student_id=int(student_id) if student_id and student_id.isdigit() else None,
            # Teachers report on their own sessions only.
            teacher_id=current_user_id() if current_role() == Role.TEACHER else None,
            status=status_filter,
        )
        return start, end, data

    @app.route("/api/reports/attendance", methods=["GET"], endpoint="api_reports_attendance")
    @roles_required(Role.ADMIN, Role.TEACHER)
    def attendance_report():
        start, end, data = _build_from_args()
        return ok(start=start, end=end, rows=data.rows, summary=data.summary)

    @app.route("/api/reports/attendance.csv", methods=["GET"], endpoint="api_reports_attendance_csv")
    @roles_required(Role.ADMIN, Role.TEACHER)
    def attendance_report_csv():
        start, end, data = _build_from_args()
        filename = f"attendance_{start.strftime('%Y%m%d')}_{end.strftime('%Y%m%d')}.csv"
        return app.response_class(
            AttendanceReportService.to_csv(data),
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )
