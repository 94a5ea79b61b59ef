from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import SchoolClass


class ClassRepository(Protocol):
    def get_by_id(self, class_id: int) -> Optional[SchoolClass]:
        raise NotImplementedError

    def code_exists(self, class_code: str) -> bool:
        raise NotImplementedError

    def create(
        self,
        *,
        teacher_id: int,
        class_name: str,
        class_code: str,
        course: str,
        section: str,
        year: str,
        subject: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Optional[int]:
        """Insert an active class; None when the class code is already taken."""

        raise NotImplementedError

    def update(
        self,
        *,
        class_id: int,
        class_name: str,
        class_code: str,
        course: str,
        section: str,
        year: str,
        subject: Optional[str] = None,
        description: Optional[str] = None,
    ) -> bool:
        raise NotImplementedError

    def set_active(self, *, class_id: int, is_active: bool) -> bool:
        raise NotImplementedError

    def list_classes(self, *, teacher_id: Optional[int] = None, include_inactive: bool = False) -> Sequence[SchoolClass]:
        raise NotImplementedError
