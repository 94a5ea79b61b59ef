from __future__ import annotations

import logging
from dataclasses import asdict, is_dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Any

from flask import Flask, jsonify

from ..core.exceptions import (
    AuthorizationError,
    DomainError,
    RecomputeFailed,
    SessionNotActive,
    SessionNotFound,
    StoreUnavailable,
    ValidationError,
)
from ..core.enums import CheckInRejection

logger = logging.getLogger(__name__)

REJECTION_STATUS = {
    CheckInRejection.NOT_ENROLLED: 403,
    CheckInRejection.INVALID_TOKEN: 403,
    CheckInRejection.DUPLICATE_CHECK_IN: 409,
}

REJECTION_MESSAGES = {
    CheckInRejection.NOT_ENROLLED: "Student is not enrolled in this class",
    CheckInRejection.INVALID_TOKEN: "Check-in code is not valid for this session",
    CheckInRejection.DUPLICATE_CHECK_IN: "Attendance already recorded for this student",
}


def to_json(value: Any) -> Any:
    """Turn domain dataclasses/enums/dates into JSON-friendly values."""

    if is_dataclass(value) and not isinstance(value, type):
        return {k: to_json(v) for k, v in asdict(value).items()}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat(timespec="seconds")
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: to_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(v) for v in value]
    return value


def ok(status_code: int = 200, **payload):
    return jsonify({"success": True, **to_json(payload)}), status_code


def fail(message: str, status_code: int, **extra):
    return jsonify({"success": False, "message": message, **to_json(extra)}), status_code


def rejection_response(result):
    return fail(
        REJECTION_MESSAGES[result.rejection],
        REJECTION_STATUS[result.rejection],
        error=result.rejection,
        student_id=result.student_id,
    )


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ValidationError)
    def validation_error(e):
        return fail(str(e), 400)

    @app.errorhandler(AuthorizationError)
    def authorization_error(e):
        return fail(str(e), 403)

    @app.errorhandler(SessionNotFound)
    def session_not_found(e):
        return fail(str(e), 404, error="SESSION_NOT_FOUND")

    @app.errorhandler(SessionNotActive)
    def session_not_active(e):
        return fail(str(e), 409, error="SESSION_NOT_ACTIVE")

    @app.errorhandler(StoreUnavailable)
    @app.errorhandler(RecomputeFailed)
    def store_error(e):
        logger.error("store failure: %s", e)
        return fail("Attendance store is temporarily unavailable, please retry", 503)

    @app.errorhandler(DomainError)
    def domain_error(e):
        return fail(str(e), 400)
