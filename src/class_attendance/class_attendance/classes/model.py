from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SchoolClass:
    """A class a teacher runs; sessions and the roster hang off it."""

    class_id: int
    teacher_id: int
    class_name: str
    class_code: str
    course: str
    section: str
    year: str
    subject: Optional[str] = None
    description: Optional[str] = None
    is_active: bool = True
