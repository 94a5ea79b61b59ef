from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..core.enums import Role
from .model import User


class UserRepository(Protocol):
    def get_by_id(self, user_id: int) -> Optional[User]:
        raise NotImplementedError

    def get_by_email(self, email: str) -> Optional[User]:
        raise NotImplementedError

    def get_by_student_number(self, student_number: str) -> Optional[User]:
        raise NotImplementedError

    def create_user(
        self,
        *,
        full_name: str,
        role: Role,
        email: Optional[str],
        student_number: Optional[str],
    ) -> int:
        raise NotImplementedError

    def update_user(
        self,
        *,
        user_id: int,
        full_name: str,
        email: Optional[str],
        student_number: Optional[str],
    ) -> bool:
        raise NotImplementedError

    def set_active(self, *, user_id: int, is_active: bool) -> bool:
        raise NotImplementedError

    def list_users(self, *, role: Optional[Role] = None, include_inactive: bool = False) -> Sequence[User]:
        raise NotImplementedError
