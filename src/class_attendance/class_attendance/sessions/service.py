from __future__ import annotations

import hmac
import logging
import time as _time
from datetime import date, datetime, time
from typing import Callable, Mapping, Optional, Sequence, TypeVar

from ..common.datetime_utils import now_local
from ..common.validators import optional_text, require_max_length, require_non_empty
from ..core.constants import (
    DEFAULT_LATE_MINUTES_ALLOWED,
    MAX_SESSION_NAME_LENGTH,
    RECOMPUTE_MAX_ATTEMPTS,
    RECOMPUTE_RETRY_BACKOFF_SECONDS,
)
from ..core.enums import AttendanceMethod, AttendanceStatus, CheckInRejection, MarkOrigin, SessionStatus
from ..core.exceptions import RecomputeFailed, SessionNotActive, SessionNotFound, StoreUnavailable, ValidationError
from ..roster.repository import RosterRepository
from .factory import CheckInStrategyFactory
from .model import (
    AppliedMarks,
    AttendanceRecord,
    AttendanceSession,
    BulkMarkResult,
    MarkResult,
    PendingMark,
    SessionCounts,
)
from .repository import RecordRepository, SessionRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")

TERMINAL_STATUSES = (SessionStatus.COMPLETED, SessionStatus.CANCELLED)


class AttendanceSessionLedger:
    """Lifecycle of attendance sessions and reconciliation of their records.

    Stateless: every call re-reads what it needs from the repositories, so one
    instance can serve concurrent requests. Actor ids passed in are trusted;
    authorization happens in the controllers.

    Counts on a session are a cache over its records. They are always
    recomputed from the records, in the same transaction as the marks that
    change them, never patched incrementally.
    """

    def __init__(
        self,
        sessions: SessionRepository,
        records: RecordRepository,
        roster: RosterRepository,
        *,
        strategy_factory: CheckInStrategyFactory | None = None,
        default_late_minutes: int = DEFAULT_LATE_MINUTES_ALLOWED,
        retry_backoff_seconds: float = RECOMPUTE_RETRY_BACKOFF_SECONDS,
        clock: Callable[[], datetime] = now_local,
        sleep: Callable[[float], None] = _time.sleep,
    ):
        self._sessions = sessions
        self._records = records
        self._roster = roster
        self._factory = strategy_factory or CheckInStrategyFactory()
        self._default_late_minutes = int(default_late_minutes)
        self._retry_backoff = float(retry_backoff_seconds)
        self._clock = clock
        self._sleep = sleep

    # -------- lifecycle --------
    def open(
        self,
        *,
        class_id: int,
        teacher_id: int,
        name: str,
        session_date: date,
        start_time: time,
        method: AttendanceMethod = AttendanceMethod.MANUAL,
        check_in_token: Optional[str] = None,
        allow_late: bool = False,
        late_minutes_allowed: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> AttendanceSession:
        name = require_max_length(require_non_empty(name, "Session name"), "Session name", MAX_SESSION_NAME_LENGTH)
        try:
            late_minutes = self._default_late_minutes if late_minutes_allowed is None else int(late_minutes_allowed)
        except (TypeError, ValueError):
            raise ValidationError("Late minutes allowed must be a whole number")
        if late_minutes < 0:
            raise ValidationError("Late minutes allowed cannot be negative")
        if method == AttendanceMethod.QR and not check_in_token:
            raise ValidationError("QR sessions need a check-in token")

        total = len(self._roster.enrolled_student_ids(class_id))
        session_id = self._sessions.create(
            class_id=int(class_id),
            teacher_id=int(teacher_id),
            session_name=name,
            session_date=session_date,
            start_time=start_time,
            method=method,
            check_in_token=check_in_token,
            allow_late=bool(allow_late),
            late_minutes_allowed=late_minutes,
            total_students=total,
            notes=optional_text(notes),
        )
        logger.info("opened session %s for class %s (%s enrolled)", session_id, class_id, total)
        return self.get_session(session_id)

    def close(self, session_id: int, reason: SessionStatus = SessionStatus.COMPLETED) -> AttendanceSession:
        """End a session. Closing an already-terminal session is a no-op."""

        if reason not in TERMINAL_STATUSES:
            raise ValidationError("A session can only be closed as completed or cancelled")

        session = self.get_session(session_id)
        if session.status.is_terminal:
            return session

        end_time = self._clock().time().replace(microsecond=0) if reason == SessionStatus.COMPLETED else None
        if self._sessions.close(session_id=session.session_id, status=reason, end_time=end_time):
            logger.info("session %s closed as %s", session_id, reason.value)
        # Lost the race to another close: whatever it stored is the answer.
        return self.get_session(session_id)

    def delete_session(self, session_id: int) -> None:
        self.get_session(session_id)
        self._sessions.delete(int(session_id))
        logger.info("session %s deleted", session_id)

    # -------- reads --------
    def get_session(self, session_id: int) -> AttendanceSession:
        session = self._sessions.get_by_id(int(session_id))
        if not session:
            raise SessionNotFound(int(session_id))
        return session

    def list_sessions(
        self,
        *,
        class_id: Optional[int] = None,
        teacher_id: Optional[int] = None,
        status: Optional[SessionStatus] = None,
    ) -> Sequence[AttendanceSession]:
        return self._sessions.list_sessions(class_id=class_id, teacher_id=teacher_id, status=status)

    def list_records(self, session_id: int) -> Sequence[AttendanceRecord]:
        self.get_session(session_id)
        return self._records.list_for_session(int(session_id))

    # -------- marking --------
    def mark_attendance(
        self,
        *,
        session_id: int,
        student_id: int,
        status: AttendanceStatus,
        origin: MarkOrigin,
        notes: Optional[str] = None,
    ) -> MarkResult:
        session = self._require_active(session_id)
        mark = PendingMark(student_id=int(student_id), status=status, origin=origin, notes=optional_text(notes))
        if not self._is_enrolled(session, mark.student_id):
            return MarkResult.rejected(mark.student_id, CheckInRejection.NOT_ENROLLED)

        applied = self._apply(session.session_id, [mark])
        return self._result_for(mark, applied.records[0], applied.counts)

    def mark_bulk(
        self,
        *,
        session_id: int,
        statuses: Mapping[int, AttendanceStatus],
        notes: Optional[str] = None,
    ) -> BulkMarkResult:
        """Teacher marks for many students, written and recomputed together."""

        session = self._require_active(session_id)
        note = optional_text(notes)
        marks = [
            PendingMark(student_id=int(student_id), status=status, origin=MarkOrigin.TEACHER, notes=note)
            for student_id, status in statuses.items()
        ]
        accepted = [m for m in marks if self._is_enrolled(session, m.student_id)]

        applied = self._apply(session.session_id, accepted)
        stored = {m.student_id: r for m, r in zip(accepted, applied.records)}
        results = [
            self._result_for(m, stored[m.student_id], applied.counts)
            if m.student_id in stored
            else MarkResult.rejected(m.student_id, CheckInRejection.NOT_ENROLLED)
            for m in marks
        ]
        return BulkMarkResult(results=results, counts=applied.counts)

    def check_in(
        self,
        *,
        session_id: int,
        student_id: int,
        token: Optional[str],
        now: datetime | None = None,
    ) -> MarkResult:
        """Student self check-in with the session's QR token."""

        session = self._require_active(session_id)
        if not session.check_in_token or not hmac.compare_digest(
            session.check_in_token.encode("utf-8"), (token or "").encode("utf-8")
        ):
            logger.warning("invalid check-in token for session %s by student %s", session_id, student_id)
            return MarkResult.rejected(int(student_id), CheckInRejection.INVALID_TOKEN)

        now = now or self._clock()
        strategy = self._factory.for_check_in(now=now, session=session)
        decision = strategy.decide_check_in(now=now, session=session)
        return self.mark_attendance(
            session_id=session.session_id,
            student_id=student_id,
            status=decision.status,
            origin=MarkOrigin.STUDENT,
            notes=decision.note,
        )

    def record_excused(self, *, session_id: int, student_id: int, notes: Optional[str] = None) -> AttendanceRecord:
        """Set a student's record to excused after an approved excuse.

        Works on terminal sessions as well: an audit correction touches only
        the record and the counts cache, never the session's lifecycle fields.
        """

        session = self.get_session(session_id)
        mark = PendingMark(
            student_id=int(student_id),
            status=AttendanceStatus.EXCUSED,
            origin=MarkOrigin.SYSTEM,
            notes=optional_text(notes),
        )
        if not self._is_enrolled(session, mark.student_id):
            raise ValidationError(f"Cannot excuse student {student_id}: {CheckInRejection.NOT_ENROLLED.value}")

        applied = self._apply(session.session_id, [mark], require_active=False)
        return applied.records[0]

    # -------- reconciliation --------
    def recompute_counts(self, session_id: int) -> SessionCounts:
        """Rewrite a session's counts from its records, retrying once on store failure."""

        counts = self._with_retry(session_id, lambda: self._sessions.recompute_counts(int(session_id)))
        if counts is None:
            raise SessionNotFound(int(session_id))
        return counts

    # -------- helpers --------
    def _require_active(self, session_id: int) -> AttendanceSession:
        session = self.get_session(session_id)
        if not session.is_active:
            raise SessionNotActive(session.session_id, session.status.value)
        return session

    def _is_enrolled(self, session: AttendanceSession, student_id: int) -> bool:
        enrollment = self._roster.get(class_id=session.class_id, student_id=student_id)
        if not enrollment or not enrollment.is_enrolled:
            logger.warning("student %s is not enrolled in class %s", student_id, session.class_id)
            return False
        return True

    def _apply(self, session_id: int, marks: Sequence[PendingMark], *, require_active: bool = True) -> AppliedMarks:
        applied = self._with_retry(
            session_id,
            lambda: self._sessions.apply_marks(
                session_id=session_id,
                marks=marks,
                marked_at=self._clock(),
                require_active=require_active,
            ),
        )
        if applied is None:
            raise SessionNotFound(int(session_id))
        if require_active and applied.session_status.is_terminal:
            # Closed after our first read; the store wrote nothing.
            raise SessionNotActive(int(session_id), applied.session_status.value)
        return applied

    def _with_retry(self, session_id: int, operation: Callable[[], T]) -> T:
        """Run a store unit of work, retrying once after a backoff.

        Each attempt is its own transaction, so a failed one leaves nothing
        behind and the retry starts clean.
        """

        for attempt in range(1, RECOMPUTE_MAX_ATTEMPTS + 1):
            try:
                return operation()
            except (StoreUnavailable, RecomputeFailed) as e:
                if attempt == RECOMPUTE_MAX_ATTEMPTS:
                    logger.error("store work on session %s gave up after %s attempts", session_id, attempt)
                    raise RecomputeFailed(f"Could not update counts for session {session_id}") from e
                logger.warning("store work on session %s failed (%s), retrying", session_id, e)
                self._sleep(self._retry_backoff * attempt)

        raise RecomputeFailed(f"Could not update counts for session {session_id}")

    @staticmethod
    def _result_for(mark: PendingMark, record: Optional[AttendanceRecord], counts: Optional[SessionCounts]) -> MarkResult:
        if record is None:
            return MarkResult.rejected(mark.student_id, CheckInRejection.DUPLICATE_CHECK_IN)
        return MarkResult(student_id=mark.student_id, record=record, counts=counts)
