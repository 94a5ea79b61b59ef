from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import AbstractSet, Iterable, Optional

from ..core.constants import DEFAULT_LATE_MINUTES_ALLOWED
from ..core.enums import AttendanceMethod, AttendanceStatus, CheckInRejection, MarkOrigin, SessionStatus


@dataclass(frozen=True)
class SessionCounts:
    """Denormalized tallies cached on a session row."""

    present: int = 0
    absent: int = 0
    excused: int = 0
    late: int = 0
    total_students: int = 0

    @property
    def marked(self) -> int:
        return self.present + self.absent + self.excused + self.late


@dataclass(frozen=True)
class AttendanceSession:
    """Domain entity: one attendance-taking event for a class on a date."""

    session_id: int
    class_id: int
    teacher_id: int
    session_name: str
    session_date: date
    start_time: time
    status: SessionStatus
    method: AttendanceMethod = AttendanceMethod.MANUAL
    end_time: Optional[time] = None
    check_in_token: Optional[str] = None
    allow_late: bool = False
    late_minutes_allowed: int = DEFAULT_LATE_MINUTES_ALLOWED
    counts: SessionCounts = SessionCounts()
    notes: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    @property
    def attendance_rate(self) -> float:
        if self.counts.total_students == 0:
            return 0.0
        return self.counts.present / self.counts.total_students * 100


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one student's outcome within a session."""

    record_id: int
    session_id: int
    student_id: int
    status: AttendanceStatus
    marked_at: datetime
    origin: MarkOrigin
    notes: Optional[str] = None


@dataclass(frozen=True)
class MarkResult:
    """Outcome of a marking attempt.

    Either ``record`` is set (the mark was stored) or ``rejection`` says why
    it was refused; refusals leave the records untouched.
    """

    student_id: int
    record: Optional[AttendanceRecord] = None
    rejection: Optional[CheckInRejection] = None
    counts: Optional[SessionCounts] = None

    @property
    def ok(self) -> bool:
        return self.rejection is None

    @classmethod
    def rejected(cls, student_id: int, reason: CheckInRejection) -> "MarkResult":
        return cls(student_id=student_id, rejection=reason)


@dataclass(frozen=True)
class BulkMarkResult:
    results: list[MarkResult]
    counts: SessionCounts


@dataclass(frozen=True)
class PendingMark:
    """A validated mark waiting to be written."""

    student_id: int
    status: AttendanceStatus
    origin: MarkOrigin
    notes: Optional[str] = None

    @property
    def write_once(self) -> bool:
        return self.origin == MarkOrigin.STUDENT


@dataclass(frozen=True)
class AppliedMarks:
    """What the store did with a batch of marks.

    ``records`` lines up with the submitted marks; None stands for a write-once
    mark that found a record already there. When the session was not open for
    marking nothing was written: ``records`` is empty and ``counts`` is None.
    """

    session_status: SessionStatus
    records: tuple[Optional[AttendanceRecord], ...] = ()
    counts: Optional[SessionCounts] = None


def tally_counts(records: Iterable[AttendanceRecord], enrolled_ids: AbstractSet[int]) -> SessionCounts:
    """Pure recompute of session counts from records restricted to the enrolled roster."""

    by_status = {status: 0 for status in AttendanceStatus}
    for r in records:
        if r.student_id in enrolled_ids:
            by_status[r.status] += 1

    return SessionCounts(
        present=by_status[AttendanceStatus.PRESENT],
        absent=by_status[AttendanceStatus.ABSENT],
        excused=by_status[AttendanceStatus.EXCUSED],
        late=by_status[AttendanceStatus.LATE],
        total_students=len(enrolled_ids),
    )
