from __future__ import annotations

from datetime import date, datetime, time
from typing import Optional, Protocol, Sequence

from ..core.constants import DEFAULT_LIST_LIMIT
from ..core.enums import AttendanceMethod, SessionStatus
from .model import AppliedMarks, AttendanceRecord, AttendanceSession, PendingMark, SessionCounts


class SessionRepository(Protocol):
    """Persistence for attendance sessions.

    Note (DIP): the ledger depends on this interface, never on a concrete DB.
    """

    def create(
        self,
        *,
        class_id: int,
        teacher_id: int,
        session_name: str,
        session_date: date,
        start_time: time,
        method: AttendanceMethod,
        check_in_token: Optional[str],
        allow_late: bool,
        late_minutes_allowed: int,
        total_students: int,
        notes: Optional[str] = None,
    ) -> int:
        raise NotImplementedError

    def get_by_id(self, session_id: int) -> Optional[AttendanceSession]:
        raise NotImplementedError

    def close(self, *, session_id: int, status: SessionStatus, end_time: Optional[time]) -> bool:
        """Move an active session to a terminal status; False when it was not active."""

        raise NotImplementedError

    def recompute_counts(self, session_id: int) -> Optional[SessionCounts]:
        """Atomically rewrite the cached counts from the enrolled roster and the records.

        Implementations read the roster and records and write every count field
        inside one unit that excludes concurrent recomputes of the same session.
        Returns None when the session does not exist.
        """

        raise NotImplementedError

    def apply_marks(
        self,
        *,
        session_id: int,
        marks: Sequence[PendingMark],
        marked_at: datetime,
        require_active: bool = True,
    ) -> Optional[AppliedMarks]:
        """Write marks and refresh the counts as one unit.

        The session row is locked first and its status read under that lock.
        With ``require_active`` a non-active session gets no writes at all.
        Otherwise write-once marks are inserted only when the pair has no
        record yet, the rest overwrite, and the counts are recomputed before
        anything becomes visible. A failure at any step leaves no trace.
        Returns None when the session does not exist.
        """

        raise NotImplementedError

    def list_sessions(
        self,
        *,
        class_id: Optional[int] = None,
        teacher_id: Optional[int] = None,
        status: Optional[SessionStatus] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> Sequence[AttendanceSession]:
        raise NotImplementedError

    def delete(self, session_id: int) -> bool:
        """Delete a session; its records go with it."""

        raise NotImplementedError


class RecordRepository(Protocol):
    """Attendance records keyed by (session_id, student_id)."""

    def get(self, *, session_id: int, student_id: int) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def list_for_session(self, session_id: int) -> Sequence[AttendanceRecord]:
        raise NotImplementedError
