from __future__ import annotations

from functools import wraps

from flask import jsonify, session

from ..core.enums import Role


def current_user_id() -> int:
    return int(session["user_id"])


def current_role() -> Role:
    return Role(session.get("role"))


def roles_required(*roles: Role):
    """Allow only signed-in actors with one of ``roles``.

    Identity is put into the Flask session by the upstream auth layer and
    trusted here.
    """

    allowed = {r.value for r in roles}

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if "user_id" not in session:
                return jsonify({"success": False, "message": "Please sign in to continue"}), 401

            if session.get("role") not in allowed:
                return jsonify({"success": False, "message": "You do not have access to this resource"}), 403

            return view(*args, **kwargs)

        return wrapper

    return decorator
