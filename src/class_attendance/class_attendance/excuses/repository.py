from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..core.constants import DEFAULT_LIST_LIMIT
from ..core.enums import ExcuseStatus
from .model import ExcuseRequest


class ExcuseRepository(Protocol):
    def create(self, *, student_id: int, session_id: int, reason: str) -> Optional[int]:
        """Store a pending request; None when the student already filed one for the session."""

        raise NotImplementedError

    def get(self, request_id: int) -> Optional[ExcuseRequest]:
        raise NotImplementedError

    def decide(
        self,
        *,
        request_id: int,
        status: ExcuseStatus,
        reviewed_by: int,
        review_notes: Optional[str] = None,
    ) -> bool:
        """Resolve a pending request; False when it was not pending anymore."""

        raise NotImplementedError

    def reopen(self, request_id: int) -> bool:
        """Put an approved request back to pending, clearing the review fields."""

        raise NotImplementedError

    def list_requests(
        self,
        *,
        status: Optional[ExcuseStatus] = None,
        student_id: Optional[int] = None,
        class_id: Optional[int] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> Sequence[ExcuseRequest]:
        raise NotImplementedError
