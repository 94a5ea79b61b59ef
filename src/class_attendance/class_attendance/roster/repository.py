from __future__ import annotations

from typing import AbstractSet, Optional, Protocol, Sequence

from ..core.enums import EnrollmentStatus
from .model import Enrollment


class RosterRepository(Protocol):
    def enrolled_student_ids(self, class_id: int) -> AbstractSet[int]:
        """Students whose enrollment in the class is ``enrolled``."""

        raise NotImplementedError

    def get(self, *, class_id: int, student_id: int) -> Optional[Enrollment]:
        raise NotImplementedError

    def create_request(self, *, class_id: int, student_id: int) -> bool:
        """Create a pending enrollment; False if the pair already has one."""

        raise NotImplementedError

    def decide(self, *, class_id: int, student_id: int, status: EnrollmentStatus) -> bool:
        """Resolve a pending request; False if there was no pending request."""

        raise NotImplementedError

    def enroll(self, *, class_id: int, student_id: int) -> bool:
        """Enroll directly; False if the student was already enrolled."""

        raise NotImplementedError

    def remove(self, *, class_id: int, student_id: int) -> bool:
        raise NotImplementedError

    def list_members(self, *, class_id: int, status: Optional[EnrollmentStatus] = None) -> Sequence[Enrollment]:
        raise NotImplementedError
