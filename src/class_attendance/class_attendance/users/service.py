from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..common.validators import optional_text, require_max_length, require_non_empty
from ..core.constants import MAX_EMAIL_LENGTH, MAX_FULL_NAME_LENGTH, MAX_STUDENT_NUMBER_LENGTH
from ..core.enums import Role
from ..core.exceptions import AuthorizationError, ValidationError
from .model import User
from .repository import UserRepository

logger = logging.getLogger(__name__)


class UserService:
    """Use case: manage the teacher and student directory (admin)."""

    def __init__(self, users: UserRepository):
        self._users = users

    def get_user(self, user_id: int) -> User:
        user = self._users.get_by_id(int(user_id))
        if not user:
            raise ValidationError("User does not exist")
        return user

    def create_account(
        self,
        *,
        current_role: Role,
        full_name: str,
        role: Role,
        email: Optional[str] = None,
        student_number: Optional[str] = None,
    ) -> int:
        self._require_admin(current_role)
        if role == Role.ADMIN:
            raise ValidationError("Admins cannot be created here")

        full_name, email, student_number = self._clean(role, full_name, email, student_number)
        self._require_unique(email=email, student_number=student_number)

        user_id = self._users.create_user(full_name=full_name, role=role, email=email, student_number=student_number)
        logger.info("created %s account %s", role.value, user_id)
        return user_id

    def update_account(
        self,
        *,
        current_role: Role,
        user_id: int,
        full_name: str,
        email: Optional[str] = None,
        student_number: Optional[str] = None,
    ) -> User:
        self._require_admin(current_role)
        user = self.get_user(user_id)
        if user.role == Role.ADMIN:
            raise ValidationError("Admin accounts cannot be edited here")

        full_name, email, student_number = self._clean(user.role, full_name, email, student_number)
        self._require_unique(email=email, student_number=student_number, except_user_id=user.user_id)

        self._users.update_user(
            user_id=user.user_id, full_name=full_name, email=email, student_number=student_number
        )
        return self.get_user(user.user_id)

    def set_active(self, *, current_role: Role, user_id: int, is_active: bool) -> User:
        """Accounts are never deleted; a deactivated person keeps their history."""

        self._require_admin(current_role)
        user = self.get_user(user_id)
        if user.role == Role.ADMIN:
            raise ValidationError("Admin accounts cannot be deactivated")

        if user.is_active != bool(is_active):
            self._users.set_active(user_id=user.user_id, is_active=bool(is_active))
            logger.info("user %s %s", user.user_id, "activated" if is_active else "deactivated")
        return self.get_user(user.user_id)

    def list_accounts(
        self,
        *,
        current_role: Role,
        role: Optional[Role] = None,
        include_inactive: bool = False,
    ) -> Sequence[User]:
        self._require_admin(current_role)
        return self._users.list_users(role=role, include_inactive=include_inactive)

    @staticmethod
    def _require_admin(current_role: Role) -> None:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Only admins can manage accounts")

    @staticmethod
    def _clean(role: Role, full_name: str, email: Optional[str], student_number: Optional[str]):
        full_name = require_max_length(require_non_empty(full_name, "Full name"), "Full name", MAX_FULL_NAME_LENGTH)

        email = optional_text(email)
        if email is not None:
            require_max_length(email, "Email", MAX_EMAIL_LENGTH)
            if "@" not in email:
                raise ValidationError("Email is invalid")
            email = email.lower()

        student_number = optional_text(student_number)
        if role == Role.STUDENT:
            if student_number is None:
                raise ValidationError("Student number is required")
            require_max_length(student_number, "Student number", MAX_STUDENT_NUMBER_LENGTH)
        elif student_number is not None:
            raise ValidationError("Only students have a student number")

        return full_name, email, student_number

    def _require_unique(
        self,
        *,
        email: Optional[str],
        student_number: Optional[str],
        except_user_id: Optional[int] = None,
    ) -> None:
        if email:
            other = self._users.get_by_email(email)
            if other and other.user_id != except_user_id:
                raise ValidationError("Email is already in use")
        if student_number:
            other = self._users.get_by_student_number(student_number)
            if other and other.user_id != except_user_id:
                raise ValidationError("Student number is already in use")
