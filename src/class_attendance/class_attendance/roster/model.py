from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import EnrollmentStatus


@dataclass(frozen=True)
class Enrollment:
    """A student's membership (or request for it) in a class roster."""

    class_id: int
    student_id: int
    status: EnrollmentStatus
    requested_at: Optional[datetime] = None
    decided_at: Optional[datetime] = None
    student_name: Optional[str] = None

    @property
    def is_enrolled(self) -> bool:
        return self.status == EnrollmentStatus.ENROLLED
