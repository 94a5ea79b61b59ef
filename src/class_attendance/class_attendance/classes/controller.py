from __future__ import annotations

from flask import Flask, request

from ..common.access import current_role, current_user_id, roles_required
from ..common.responses import ok
from ..common.validators import require_positive_id
from ..core.enums import Role
from ..container import Container


def register(app: Flask, container: Container) -> None:
    classes = container.class_service

    @app.route("/api/classes", methods=["POST"], endpoint="api_classes_create")
    @roles_required(Role.TEACHER, Role.ADMIN)
    def create_class():
        data = request.get_json(silent=True) or {}
        teacher_id = data.get("teacher_id")
        class_id = classes.create_class(
            current_role=current_role(),
            user_id=current_user_id(),
            name=data.get("name") or "",
            course=data.get("course") or "",
            section=data.get("section") or "",
            year=str(data.get("year") or ""),
            subject=data.get("subject"),
            description=data.get("description"),
            class_code=data.get("class_code"),
            teacher_id=require_positive_id(teacher_id, "teacher_id") if teacher_id is not None else None,
        )
        return ok(201, classroom=classes.get_class(class_id))

    @app.route("/api/classes", methods=["GET"], endpoint="api_classes_list")
    @roles_required(Role.STUDENT, Role.TEACHER, Role.ADMIN)
    def list_classes():
        rows = classes.list_classes(
            current_role=current_role(),
            user_id=current_user_id(),
            include_inactive=request.args.get("include_inactive") == "1",
        )
        return ok(classes=list(rows))

    @app.route("/api/classes/<int:class_id>", methods=["GET"], endpoint="api_classes_show")
    @roles_required(Role.STUDENT, Role.TEACHER, Role.ADMIN)
    def show_class(class_id: int):
        return ok(classroom=classes.get_class(class_id))

    @app.route("/api/classes/<int:class_id>", methods=["PUT"], endpoint="api_classes_update")
    @roles_required(Role.TEACHER, Role.ADMIN)
    def update_class(class_id: int):
        data = request.get_json(silent=True) or {}
        updated = classes.update_class(
            current_role=current_role(),
            user_id=current_user_id(),
            class_id=class_id,
            name=data.get("name") or "",
            course=data.get("course") or "",
            section=data.get("section") or "",
            year=str(data.get("year") or ""),
            subject=data.get("subject"),
            description=data.get("description"),
            class_code=data.get("class_code"),
        )
        return ok(classroom=updated)

    @app.route("/api/classes/<int:class_id>", methods=["DELETE"], endpoint="api_classes_delete")
    @roles_required(Role.TEACHER, Role.ADMIN)
    def delete_class(class_id: int):
        archived = classes.deactivate_class(current_role=current_role(), user_id=current_user_id(), class_id=class_id)
        return ok(message="Class archived", classroom=archived)
