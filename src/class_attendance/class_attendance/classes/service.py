from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..common.validators import optional_text, require_max_length, require_non_empty
from ..core.constants import (
    MAX_CLASS_CODE_LENGTH,
    MAX_CLASS_NAME_LENGTH,
    MAX_COURSE_LENGTH,
    MAX_SECTION_LENGTH,
    MAX_YEAR_LENGTH,
)
from ..core.enums import Role
from ..core.exceptions import AuthorizationError, ValidationError
from ..users.repository import UserRepository
from .model import SchoolClass
from .repository import ClassRepository

logger = logging.getLogger(__name__)

CLASS_CODE_ATTEMPTS = 3


def base_class_code(course: str, section: str, year: str) -> str:
    """``COU-SECTION-YEAR`` from the first three letters of the course."""

    code = f"{course[:3]}-{section}-{year}".upper()
    return "".join(code.split())


class ClassService:
    """Use case: teachers and admins create and maintain classes."""

    def __init__(self, classes: ClassRepository, users: UserRepository):
        self._classes = classes
        self._users = users

    def get_class(self, class_id: int) -> SchoolClass:
        c = self._classes.get_by_id(int(class_id))
        if not c:
            raise ValidationError("Class does not exist")
        return c

    def create_class(
        self,
        *,
        current_role: Role,
        user_id: int,
        name: str,
        course: str,
        section: str,
        year: str,
        subject: Optional[str] = None,
        description: Optional[str] = None,
        class_code: Optional[str] = None,
        teacher_id: Optional[int] = None,
    ) -> int:
        if current_role == Role.TEACHER:
            if teacher_id is not None and int(teacher_id) != int(user_id):
                raise AuthorizationError("Teachers can only create their own classes")
            teacher_id = int(user_id)
        elif current_role == Role.ADMIN:
            if teacher_id is None:
                raise ValidationError("teacher_id is required")
            self._require_active_teacher(int(teacher_id))
        else:
            raise AuthorizationError("Only teachers and admins can create classes")

        fields = self._clean(name=name, course=course, section=section, year=year, subject=subject, description=description)
        explicit_code = self._clean_code(class_code)

        for _ in range(CLASS_CODE_ATTEMPTS):
            code = explicit_code or self._next_free_code(fields["course"], fields["section"], fields["year"])
            class_id = self._classes.create(teacher_id=int(teacher_id), class_code=code, **fields)
            if class_id is not None:
                logger.info("class %s (%s) created for teacher %s", class_id, code, teacher_id)
                return class_id
            if explicit_code:
                break
        raise ValidationError("Class code is already in use")

    def update_class(
        self,
        *,
        current_role: Role,
        user_id: int,
        class_id: int,
        name: str,
        course: str,
        section: str,
        year: str,
        subject: Optional[str] = None,
        description: Optional[str] = None,
        class_code: Optional[str] = None,
    ) -> SchoolClass:
        current = self._require_manager(current_role, user_id, class_id)
        fields = self._clean(name=name, course=course, section=section, year=year, subject=subject, description=description)

        code = self._clean_code(class_code) or current.class_code
        if code != current.class_code and self._classes.code_exists(code):
            raise ValidationError("Class code is already in use")

        self._classes.update(class_id=current.class_id, class_code=code, **fields)
        return self.get_class(current.class_id)

    def deactivate_class(self, *, current_role: Role, user_id: int, class_id: int) -> SchoolClass:
        """Archive a class. Its sessions and records stay readable."""

        current = self._require_manager(current_role, user_id, class_id)
        if current.is_active:
            self._classes.set_active(class_id=current.class_id, is_active=False)
            logger.info("class %s deactivated", current.class_id)
        return self.get_class(current.class_id)

    def list_classes(self, *, current_role: Role, user_id: int, include_inactive: bool = False) -> Sequence[SchoolClass]:
        if current_role == Role.TEACHER:
            return self._classes.list_classes(teacher_id=int(user_id), include_inactive=include_inactive)
        if current_role == Role.ADMIN:
            return self._classes.list_classes(include_inactive=include_inactive)
        # Students browse the open classes they can ask to join.
        return self._classes.list_classes()

    def _require_manager(self, current_role: Role, user_id: int, class_id: int) -> SchoolClass:
        c = self.get_class(class_id)
        if current_role == Role.ADMIN:
            return c
        if current_role == Role.TEACHER and c.teacher_id == int(user_id):
            return c
        raise AuthorizationError("You can only manage your own classes")

    def _require_active_teacher(self, teacher_id: int) -> None:
        teacher = self._users.get_by_id(teacher_id)
        if not teacher or teacher.role != Role.TEACHER or not teacher.is_active:
            raise ValidationError("teacher_id must be an active teacher")

    def _next_free_code(self, course: str, section: str, year: str) -> str:
        base = base_class_code(course, section, year)
        code = base
        counter = 1
        while self._classes.code_exists(code):
            code = f"{base}-{counter}"
            counter += 1
        return code

    @staticmethod
    def _clean_code(class_code: Optional[str]) -> Optional[str]:
        code = optional_text(class_code)
        if code is None:
            return None
        return require_max_length(code.upper(), "Class code", MAX_CLASS_CODE_LENGTH)

    @staticmethod
    def _clean(*, name, course, section, year, subject, description) -> dict:
        return dict(
            class_name=require_max_length(require_non_empty(name, "Class name"), "Class name", MAX_CLASS_NAME_LENGTH),
            course=require_max_length(require_non_empty(course, "Course"), "Course", MAX_COURSE_LENGTH),
            section=require_max_length(require_non_empty(section, "Section"), "Section", MAX_SECTION_LENGTH),
            year=require_max_length(require_non_empty(year, "Year"), "Year", MAX_YEAR_LENGTH),
            subject=optional_text(subject),
            description=optional_text(description),
        )
