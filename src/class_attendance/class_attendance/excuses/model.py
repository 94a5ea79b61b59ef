from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import ExcuseStatus


@dataclass(frozen=True)
class ExcuseRequest:
    """Domain entity: a student's request to have a session outcome excused."""

    request_id: int
    student_id: int
    session_id: int
    reason: str
    status: ExcuseStatus
    submitted_at: datetime
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[int] = None
    review_notes: Optional[str] = None
