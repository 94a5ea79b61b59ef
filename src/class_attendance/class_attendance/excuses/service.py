from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..common.validators import optional_text, require_max_length, require_non_empty
from ..core.constants import MAX_EXCUSE_REASON_LENGTH
from ..core.enums import ExcuseStatus, Role
from ..core.exceptions import AuthorizationError, DomainError, ValidationError
from ..roster.repository import RosterRepository
from ..sessions.service import AttendanceSessionLedger
from .model import ExcuseRequest
from .repository import ExcuseRepository

logger = logging.getLogger(__name__)

REVIEWER_ROLES = (Role.TEACHER, Role.ADMIN)


class ExcuseService:
    """Use cases: students file excuses, teachers/admins review them."""

    def __init__(self, excuses: ExcuseRepository, ledger: AttendanceSessionLedger, roster: RosterRepository):
        self._excuses = excuses
        self._ledger = ledger
        self._roster = roster

    def submit(self, *, current_role: Role, student_id: int, session_id: int, reason: str) -> int:
        if current_role != Role.STUDENT:
            raise AuthorizationError("Only students can submit excuse requests")

        reason = require_max_length(require_non_empty(reason, "Reason"), "Reason", MAX_EXCUSE_REASON_LENGTH)
        session = self._ledger.get_session(session_id)

        enrollment = self._roster.get(class_id=session.class_id, student_id=int(student_id))
        if not enrollment or not enrollment.is_enrolled:
            raise ValidationError("You are not enrolled in this class")

        request_id = self._excuses.create(student_id=int(student_id), session_id=session.session_id, reason=reason)
        if request_id is None:
            raise ValidationError("An excuse has already been submitted for this session")
        return request_id

    def approve(
        self,
        *,
        current_role: Role,
        reviewer_id: int,
        request_id: int,
        review_notes: str = "",
    ) -> ExcuseRequest:
        if current_role not in REVIEWER_ROLES:
            raise AuthorizationError("You are not allowed to review excuses")

        req = self._require_pending(request_id)
        notes = optional_text(review_notes)

        decided = self._excuses.decide(
            request_id=req.request_id,
            status=ExcuseStatus.APPROVED,
            reviewed_by=int(reviewer_id),
            review_notes=notes,
        )
        if not decided:
            raise ValidationError("Excuse request was already reviewed")

        try:
            self._ledger.record_excused(
                session_id=req.session_id,
                student_id=req.student_id,
                notes=f"Excuse #{req.request_id} approved" + (f": {notes}" if notes else ""),
            )
        except DomainError:
            # No excused record was written; hand the request back for review.
            self._excuses.reopen(req.request_id)
            logger.warning("excuse %s could not be applied and is pending again", req.request_id)
            raise
        logger.info("excuse %s approved by %s", req.request_id, reviewer_id)
        return self._excuses.get(req.request_id)

    def reject(
        self,
        *,
        current_role: Role,
        reviewer_id: int,
        request_id: int,
        review_notes: str,
    ) -> ExcuseRequest:
        if current_role not in REVIEWER_ROLES:
            raise AuthorizationError("You are not allowed to review excuses")

        notes = require_non_empty(review_notes, "Review notes")
        req = self._require_pending(request_id)

        decided = self._excuses.decide(
            request_id=req.request_id,
            status=ExcuseStatus.REJECTED,
            reviewed_by=int(reviewer_id),
            review_notes=notes,
        )
        if not decided:
            raise ValidationError("Excuse request was already reviewed")
        return self._excuses.get(req.request_id)

    def list_requests(
        self,
        *,
        status: Optional[ExcuseStatus] = None,
        student_id: Optional[int] = None,
        class_id: Optional[int] = None,
    ) -> Sequence[ExcuseRequest]:
        return self._excuses.list_requests(status=status, student_id=student_id, class_id=class_id)

    def _require_pending(self, request_id: int) -> ExcuseRequest:
        req = self._excuses.get(int(request_id))
        if not req:
            raise ValidationError("Excuse request not found")
        if req.status != ExcuseStatus.PENDING:
            raise ValidationError("Excuse request was already reviewed")
        return req
