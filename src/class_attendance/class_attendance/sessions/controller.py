from __future__ import annotations

from flask import Flask, request, send_file

from ..common.access import current_role, current_user_id, roles_required
from ..common.datetime_utils import now_local, parse_clock_time, parse_iso_date
from ..common.responses import fail, ok, rejection_response
from ..common.validators import require_positive_id
from ..core.enums import AttendanceMethod, AttendanceStatus, MarkOrigin, Role, SessionStatus
from ..core.exceptions import AuthorizationError, ValidationError
from ..container import Container
from .model import AttendanceSession
from .qr import build_check_in_payload, new_check_in_token, parse_check_in_payload, render_qr_png


def _parse_enum(enum_cls, value, field_name: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"{field_name} is invalid")


def _parse_bulk_marks(raw) -> dict[int, AttendanceStatus]:
    if not isinstance(raw, list):
        raise ValidationError("marks must be a list")
    statuses = {}
    for m in raw:
        if not isinstance(m, dict):
            raise ValidationError("Each mark needs a student_id and a status")
        student_id = require_positive_id(m.get("student_id"), "student_id")
        statuses[student_id] = _parse_enum(AttendanceStatus, m.get("status"), "status")
    return statuses


def register(app: Flask, container: Container) -> None:
    ledger = container.ledger

    def _owned_session(session_id: int) -> AttendanceSession:
        s = ledger.get_session(session_id)
        if current_role() == Role.TEACHER and s.teacher_id != current_user_id():
            raise AuthorizationError("You can only manage your own sessions")
        return s

    @app.route("/api/sessions", methods=["POST"], endpoint="api_sessions_open")
    @roles_required(Role.TEACHER)
    def open_session():
        data = request.get_json(silent=True) or {}
        class_id = require_positive_id(data.get("class_id"), "class_id")

        if not container.roster_service.can_manage_class(
            current_role=current_role(), user_id=current_user_id(), class_id=class_id
        ):
            return fail("You can only start sessions for your own classes", 403)
        if not container.class_service.get_class(class_id).is_active:
            return fail("This class is archived", 409)

        now = now_local()
        method = _parse_enum(AttendanceMethod, data.get("method") or AttendanceMethod.QR.value, "method")
        session_date = parse_iso_date(data["session_date"]) if data.get("session_date") else now.date()
        start_time = parse_clock_time(data["start_time"]) if data.get("start_time") else now.time().replace(microsecond=0)
        name = data.get("session_name") or f"Quick Session - {now.strftime('%b %d, %Y %H:%M')}"

        session = ledger.open(
            class_id=class_id,
            teacher_id=current_user_id(),
            name=name,
            session_date=session_date,
            start_time=start_time,
            method=method,
            check_in_token=new_check_in_token() if method == AttendanceMethod.QR else None,
            allow_late=bool(data.get("allow_late", False)),
            late_minutes_allowed=data.get("late_minutes_allowed"),
            notes=data.get("notes"),
        )
        return ok(201, session=session)

    @app.route("/api/sessions", methods=["GET"], endpoint="api_sessions_list")
    @roles_required(Role.TEACHER, Role.ADMIN)
    def list_sessions():
        class_id = request.args.get("class_id")
        status = request.args.get("status")
        sessions = ledger.list_sessions(
            class_id=int(class_id) if class_id and class_id.isdigit() else None,
            teacher_id=current_user_id() if current_role() == Role.TEACHER else None,
            status=_parse_enum(SessionStatus, status, "status") if status else None,
        )
        return ok(sessions=list(sessions))

    @app.route("/api/sessions/<int:session_id>", methods=["GET"], endpoint="api_sessions_show")
    @roles_required(Role.TEACHER, Role.ADMIN)
    def show_session(session_id: int):
        s = _owned_session(session_id)
        return ok(session=s, attendance_rate=round(s.attendance_rate, 1), records=list(ledger.list_records(session_id)))

    @app.route("/api/sessions/<int:session_id>/qr.png", methods=["GET"], endpoint="api_sessions_qr")
    @roles_required(Role.TEACHER)
    def session_qr(session_id: int):
        s = _owned_session(session_id)
        if not s.check_in_token:
            return fail("This session does not use QR check-in", 400)
        if not s.is_active:
            return fail("Session is no longer active", 409)
        return send_file(render_qr_png(build_check_in_payload(s)), mimetype="image/png")

    @app.route("/api/sessions/<int:session_id>/marks", methods=["POST"], endpoint="api_sessions_mark")
    @roles_required(Role.TEACHER)
    def mark(session_id: int):
        _owned_session(session_id)
        data = request.get_json(silent=True) or {}

        if "marks" in data:
            bulk = ledger.mark_bulk(
                session_id=session_id, statuses=_parse_bulk_marks(data["marks"]), notes=data.get("notes")
            )
            return ok(
                results=[
                    {"student_id": r.student_id, "ok": r.ok, "error": r.rejection, "record": r.record}
                    for r in bulk.results
                ],
                counts=bulk.counts,
            )

        result = ledger.mark_attendance(
            session_id=session_id,
            student_id=require_positive_id(data.get("student_id"), "student_id"),
            status=_parse_enum(AttendanceStatus, data.get("status"), "status"),
            origin=MarkOrigin.TEACHER,
            notes=data.get("notes"),
        )
        if not result.ok:
            return rejection_response(result)
        return ok(record=result.record, counts=result.counts)

    @app.route("/api/sessions/<int:session_id>/recompute", methods=["POST"], endpoint="api_sessions_recompute")
    @roles_required(Role.TEACHER, Role.ADMIN)
    def recompute(session_id: int):
        _owned_session(session_id)
        return ok(counts=ledger.recompute_counts(session_id))

    @app.route("/api/sessions/<int:session_id>/close", methods=["POST"], endpoint="api_sessions_close")
    @roles_required(Role.TEACHER)
    def close(session_id: int):
        _owned_session(session_id)
        data = request.get_json(silent=True) or {}
        reason = _parse_enum(SessionStatus, data.get("reason") or SessionStatus.COMPLETED.value, "reason")
        return ok(session=ledger.close(session_id, reason))

    @app.route("/api/sessions/<int:session_id>", methods=["DELETE"], endpoint="api_sessions_delete")
    @roles_required(Role.TEACHER, Role.ADMIN)
    def delete(session_id: int):
        s = _owned_session(session_id)
        ledger.delete_session(session_id)
        return ok(message=f"Attendance session '{s.session_name}' deleted")

    @app.route("/api/sessions/<int:session_id>/check-in", methods=["POST"], endpoint="api_sessions_check_in")
    @roles_required(Role.STUDENT)
    def check_in(session_id: int):
        data = request.get_json(silent=True) or {}
        token = data.get("token")
        if data.get("qr_data"):
            scanned_session_id, token = parse_check_in_payload(data["qr_data"])
            if scanned_session_id != session_id:
                return fail("QR code belongs to a different session", 400)

        result = ledger.check_in(session_id=session_id, student_id=current_user_id(), token=token)
        if not result.ok:
            return rejection_response(result)
        return ok(message="Attendance recorded", status=result.record.status, record=result.record)

