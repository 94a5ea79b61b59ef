from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Actor roles used for authorization."""

    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


class SessionStatus(str, Enum):
    """Lifecycle of an attendance session. Completed and cancelled are terminal."""

    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not SessionStatus.ACTIVE


class AttendanceStatus(str, Enum):
    """Outcome stored on an attendance record."""

    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EXCUSED = "excused"


class MarkOrigin(str, Enum):
    """Who produced an attendance record."""

    TEACHER = "teacher"
    STUDENT = "student"
    SYSTEM = "system"


class AttendanceMethod(str, Enum):
    QR = "qr"
    MANUAL = "manual"


class EnrollmentStatus(str, Enum):
    PENDING = "pending"
    ENROLLED = "enrolled"
    REJECTED = "rejected"


class ExcuseStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class CheckInRejection(str, Enum):
    """Expected, user-facing reasons a mark is refused (returned, not raised)."""

    NOT_ENROLLED = "NOT_ENROLLED"
    DUPLICATE_CHECK_IN = "DUPLICATE_CHECK_IN"
    INVALID_TOKEN = "INVALID_TOKEN"
