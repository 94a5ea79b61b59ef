from __future__ import annotations

from flask import Flask, request

from ..common.access import current_role, roles_required
from ..common.responses import ok
from ..core.enums import Role
from ..core.exceptions import ValidationError
from ..container import Container


def _parse_role(value) -> Role:
    try:
        return Role(value)
    except ValueError:
        raise ValidationError("role is invalid")


def register(app: Flask, container: Container) -> None:
    users = container.user_service

    @app.route("/api/users", methods=["POST"], endpoint="api_users_create")
    @roles_required(Role.ADMIN)
    def create_user():
        data = request.get_json(silent=True) or {}
        user_id = users.create_account(
            current_role=current_role(),
            full_name=data.get("full_name") or "",
            role=_parse_role(data.get("role")),
            email=data.get("email"),
            student_number=data.get("student_number"),
        )
        return ok(201, user=users.get_user(user_id))

    @app.route("/api/users", methods=["GET"], endpoint="api_users_list")
    @roles_required(Role.ADMIN)
    def list_users():
        role = request.args.get("role")
        rows = users.list_accounts(
            current_role=current_role(),
            role=_parse_role(role) if role else None,
            include_inactive=request.args.get("include_inactive") == "1",
        )
        return ok(users=list(rows))

    @app.route("/api/users/<int:user_id>", methods=["GET"], endpoint="api_users_show")
    @roles_required(Role.ADMIN)
    def show_user(user_id: int):
        return ok(user=users.get_user(user_id))

    @app.route("/api/users/<int:user_id>", methods=["PUT"], endpoint="api_users_update")
    @roles_required(Role.ADMIN)
    def update_user(user_id: int):
        data = request.get_json(silent=True) or {}
        user = users.update_account(
            current_role=current_role(),
            user_id=user_id,
            full_name=data.get("full_name") or "",
            email=data.get("email"),
            student_number=data.get("student_number"),
        )
        return ok(user=user)

    @app.route("/api/users/<int:user_id>/<action>", methods=["POST"], endpoint="api_users_toggle")
    @roles_required(Role.ADMIN)
    def toggle_user(user_id: int, action: str):
        if action not in ("activate", "deactivate"):
            raise ValidationError(f"Unknown action {action!r}")
        user = users.set_active(current_role=current_role(), user_id=user_id, is_active=action == "activate")
        return ok(user=user)
