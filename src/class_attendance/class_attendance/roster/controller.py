from __future__ import annotations

from flask import Flask, request

from ..common.access import current_role, current_user_id, roles_required
from ..common.responses import ok
from ..common.validators import require_positive_id
from ..core.enums import EnrollmentStatus, Role
from ..core.exceptions import ValidationError
from ..container import Container


def register(app: Flask, container: Container) -> None:
    roster = container.roster_service

    @app.route("/api/classes/<int:class_id>/enrollments", methods=["POST"], endpoint="api_class_enroll")
    @roles_required(Role.STUDENT, Role.TEACHER, Role.ADMIN)
    def enroll(class_id: int):
        """Students request to join; teachers/admins enroll one or many directly."""

        if current_role() == Role.STUDENT:
            roster.request_enrollment(current_role=current_role(), student_id=current_user_id(), class_id=class_id)
            return ok(201, message="Enrollment request sent", status=EnrollmentStatus.PENDING)

        data = request.get_json(silent=True) or {}
        if "student_ids" in data:
            count = roster.bulk_enroll(
                current_role=current_role(),
                user_id=current_user_id(),
                class_id=class_id,
                student_ids=[require_positive_id(s, "student_id") for s in data.get("student_ids") or []],
            )
            return ok(enrolled_count=count)

        created = roster.enroll(
            current_role=current_role(),
            user_id=current_user_id(),
            class_id=class_id,
            student_id=require_positive_id(data.get("student_id"), "student_id"),
        )
        return ok(201 if created else 200, status=EnrollmentStatus.ENROLLED, created=created)

    @app.route(
        "/api/enrollments/<int:class_id>/<int:student_id>/<action>",
        methods=["POST"],
        endpoint="api_enrollment_decide",
    )
    @roles_required(Role.TEACHER, Role.ADMIN)
    def decide(class_id: int, student_id: int, action: str):
        kwargs = dict(current_role=current_role(), user_id=current_user_id(), class_id=class_id, student_id=student_id)
        if action == "approve":
            roster.approve(**kwargs)
            return ok(status=EnrollmentStatus.ENROLLED)
        if action == "reject":
            roster.reject(**kwargs)
            return ok(status=EnrollmentStatus.REJECTED)
        if action == "remove":
            roster.unenroll(**kwargs)
            return ok(message="Student unenrolled")
        raise ValidationError(f"Unknown action {action!r}")

    @app.route("/api/classes/<int:class_id>/members", methods=["GET"], endpoint="api_class_members")
    @roles_required(Role.TEACHER, Role.ADMIN)
    def members(class_id: int):
        status = request.args.get("status")
        try:
            status_filter = EnrollmentStatus(status) if status else None
        except ValueError:
            raise ValidationError("status is invalid")

        rows = roster.list_members(
            current_role=current_role(),
            user_id=current_user_id(),
            class_id=class_id,
            status=status_filter,
        )
        return ok(
            members=list(rows),
            enrolled_count=sum(1 for r in rows if r.is_enrolled),
        )
