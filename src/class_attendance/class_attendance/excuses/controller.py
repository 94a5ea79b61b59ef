from __future__ import annotations

from flask import Flask, request

from ..common.access import current_role, current_user_id, roles_required
from ..common.responses import ok
from ..common.validators import require_positive_id
from ..core.enums import ExcuseStatus, Role
from ..core.exceptions import ValidationError
from ..container import Container


def register(app: Flask, container: Container) -> None:
    excuses = container.excuse_service

    @app.route("/api/excuses", methods=["POST"], endpoint="api_excuses_submit")
    @roles_required(Role.STUDENT)
    def submit():
        data = request.get_json(silent=True) or {}
        request_id = excuses.submit(
            current_role=current_role(),
            student_id=current_user_id(),
            session_id=require_positive_id(data.get("session_id"), "session_id"),
            reason=data.get("reason") or "",
        )
        return ok(201, request_id=request_id, message="Excuse submitted and pending review")

    @app.route("/api/excuses", methods=["GET"], endpoint="api_excuses_list")
    @roles_required(Role.STUDENT, Role.TEACHER, Role.ADMIN)
    def list_requests():
        status = request.args.get("status")
        class_id = request.args.get("class_id")
        try:
            status_filter = ExcuseStatus(status) if status else None
        except ValueError:
            raise ValidationError("status is invalid")

        rows = excuses.list_requests(
            status=status_filter,
            # Students only ever see their own requests.
            student_id=current_user_id() if current_role() == Role.STUDENT else None,
            class_id=int(class_id) if class_id and class_id.isdigit() else None,
        )
        return ok(excuses=list(rows))

    @app.route("/api/excuses/<int:request_id>/approve", methods=["POST"], endpoint="api_excuses_approve")
    @roles_required(Role.TEACHER, Role.ADMIN)
    def approve(request_id: int):
        data = request.get_json(silent=True) or {}
        req = excuses.approve(
            current_role=current_role(),
            reviewer_id=current_user_id(),
            request_id=request_id,
            review_notes=data.get("review_notes") or "",
        )
        return ok(excuse=req)

    @app.route("/api/excuses/<int:request_id>/reject", methods=["POST"], endpoint="api_excuses_reject")
    @roles_required(Role.TEACHER, Role.ADMIN)
    def reject(request_id: int):
        data = request.get_json(silent=True) or {}
        req = excuses.reject(
            current_role=current_role(),
            reviewer_id=current_user_id(),
            request_id=request_id,
            review_notes=data.get("review_notes") or "",
        )
        return ok(excuse=req)
