from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from ..core.enums import EnrollmentStatus, Role
from ..core.exceptions import AuthorizationError, ValidationError
from ..classes.repository import ClassRepository
from .model import Enrollment
from .repository import RosterRepository

logger = logging.getLogger(__name__)


class RosterService:
    """Use cases around class membership."""

    def __init__(self, roster: RosterRepository, classes: ClassRepository):
        self._roster = roster
        self._classes = classes

    def can_manage_class(self, *, current_role: Role, user_id: int, class_id: int) -> bool:
        if current_role == Role.ADMIN:
            return True
        if current_role != Role.TEACHER:
            return False
        c = self._classes.get_by_id(int(class_id))
        return c is not None and c.teacher_id == int(user_id)

    def request_enrollment(self, *, current_role: Role, student_id: int, class_id: int) -> None:
        if current_role != Role.STUDENT:
            raise AuthorizationError("Only students can request enrollment")
        c = self._classes.get_by_id(int(class_id))
        if not c:
            raise ValidationError("Class does not exist")
        if not c.is_active:
            raise ValidationError("This class is archived")
        if not self._roster.create_request(class_id=int(class_id), student_id=int(student_id)):
            raise ValidationError("You already requested to join this class")

    def approve(self, *, current_role: Role, user_id: int, class_id: int, student_id: int) -> None:
        self._decide(current_role, user_id, class_id, student_id, EnrollmentStatus.ENROLLED)

    def reject(self, *, current_role: Role, user_id: int, class_id: int, student_id: int) -> None:
        self._decide(current_role, user_id, class_id, student_id, EnrollmentStatus.REJECTED)

    def enroll(self, *, current_role: Role, user_id: int, class_id: int, student_id: int) -> bool:
        self._require_manager(current_role, user_id, class_id)
        return self._roster.enroll(class_id=int(class_id), student_id=int(student_id))

    def bulk_enroll(self, *, current_role: Role, user_id: int, class_id: int, student_ids: Iterable[int]) -> int:
        """Enroll many students; returns how many were not enrolled before."""

        self._require_manager(current_role, user_id, class_id)
        enrolled = 0
        for student_id in dict.fromkeys(int(s) for s in student_ids):
            if self._roster.enroll(class_id=int(class_id), student_id=student_id):
                enrolled += 1
        logger.info("bulk enrolled %s students into class %s", enrolled, class_id)
        return enrolled

    def unenroll(self, *, current_role: Role, user_id: int, class_id: int, student_id: int) -> None:
        self._require_manager(current_role, user_id, class_id)
        if not self._roster.remove(class_id=int(class_id), student_id=int(student_id)):
            raise ValidationError("Student is not enrolled in this class")

    def list_members(
        self,
        *,
        current_role: Role,
        user_id: int,
        class_id: int,
        status: Optional[EnrollmentStatus] = None,
    ) -> Sequence[Enrollment]:
        self._require_manager(current_role, user_id, class_id)
        return self._roster.list_members(class_id=int(class_id), status=status)

    def _require_manager(self, current_role: Role, user_id: int, class_id: int) -> None:
        if not self.can_manage_class(current_role=current_role, user_id=user_id, class_id=class_id):
            raise AuthorizationError("You can only manage your own classes")

    def _decide(self, current_role: Role, user_id: int, class_id: int, student_id: int, status: EnrollmentStatus) -> None:
        self._require_manager(current_role, user_id, class_id)
        if not self._roster.decide(class_id=int(class_id), student_id=int(student_id), status=status):
            raise ValidationError("No pending enrollment request for this student")
