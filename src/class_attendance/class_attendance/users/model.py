from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.enums import Role


@dataclass(frozen=True)
class User:
    """A person in the directory: admin, teacher or student.

    Credentials live with the auth layer; this record only carries what the
    attendance modules show and check.
    """

    user_id: int
    full_name: str
    role: Role
    email: Optional[str] = None
    student_number: Optional[str] = None
    is_active: bool = True
