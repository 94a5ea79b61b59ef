from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import Optional, Sequence

import mysql.connector

from ..core.constants import DEFAULT_LIST_LIMIT
from ..core.enums import AttendanceMethod, EnrollmentStatus, SessionStatus
from ..core.exceptions import RecomputeFailed
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, normalize_mysql_time
from .model import AppliedMarks, AttendanceSession, PendingMark, SessionCounts, tally_counts
from .mysql_record_repository import insert_record_once, select_session_records, upsert_record
from .repository import SessionRepository

logger = logging.getLogger(__name__)

_SESSION_COLUMNS = """
    session_id, class_id, teacher_id, session_name, session_date, start_time, end_time,
    attendance_method, status, check_in_token, allow_late_attendance, late_minutes_allowed,
    present_count, absent_count, excused_count, late_count, total_students, notes
"""


def _row_to_session(r: dict) -> AttendanceSession:
    return AttendanceSession(
        session_id=int(r["session_id"]),
        class_id=int(r["class_id"]),
        teacher_id=int(r["teacher_id"]),
        session_name=r["session_name"],
        session_date=r["session_date"],
        start_time=normalize_mysql_time(r["start_time"]),
        end_time=normalize_mysql_time(r.get("end_time")),
        method=AttendanceMethod(r["attendance_method"]),
        status=SessionStatus(r["status"]),
        check_in_token=r.get("check_in_token"),
        allow_late=bool(r.get("allow_late_attendance")),
        late_minutes_allowed=int(r.get("late_minutes_allowed") or 0),
        counts=SessionCounts(
            present=int(r.get("present_count") or 0),
            absent=int(r.get("absent_count") or 0),
            excused=int(r.get("excused_count") or 0),
            late=int(r.get("late_count") or 0),
            total_students=int(r.get("total_students") or 0),
        ),
        notes=r.get("notes"),
    )


def _lock_session(cur, session_id: int) -> Optional[dict]:
    # The row lock serializes writers of one session across processes.
    cur.execute(
        "SELECT class_id, status FROM attendance_sessions WHERE session_id=%s FOR UPDATE",
        (int(session_id),),
    )
    return fetchone(cur)


def _recompute_locked(cur, session_id: int, class_id: int) -> SessionCounts:
    cur.execute(
        "SELECT student_id FROM class_enrollments WHERE class_id=%s AND status=%s",
        (int(class_id), EnrollmentStatus.ENROLLED.value),
    )
    enrolled = frozenset(int(r["student_id"]) for r in fetchall(cur))

    counts = tally_counts(select_session_records(cur, session_id), enrolled)
    cur.execute(
        """
        UPDATE attendance_sessions
        SET present_count=%s, absent_count=%s, excused_count=%s, late_count=%s, total_students=%s
        WHERE session_id=%s
        """,
        (counts.present, counts.absent, counts.excused, counts.late, counts.total_students, int(session_id)),
    )
    return counts


class MySQLSessionRepository(SessionRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

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
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO attendance_sessions(
                    class_id, teacher_id, session_name, session_date, start_time,
                    attendance_method, status, check_in_token, allow_late_attendance,
                    late_minutes_allowed, total_students, notes
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(class_id),
                    int(teacher_id),
                    session_name,
                    session_date,
                    start_time,
                    method.value,
                    SessionStatus.ACTIVE.value,
                    check_in_token,
                    1 if allow_late else 0,
                    int(late_minutes_allowed),
                    int(total_students),
                    notes,
                ),
            )
            return int(cur.lastrowid)

    def get_by_id(self, session_id: int) -> Optional[AttendanceSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_SESSION_COLUMNS} FROM attendance_sessions WHERE session_id=%s",
                (int(session_id),),
            )
            r = fetchone(cur)
            return _row_to_session(r) if r else None

    def close(self, *, session_id: int, status: SessionStatus, end_time: Optional[time]) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_sessions
                SET status=%s, end_time=COALESCE(%s, end_time)
                WHERE session_id=%s AND status=%s
                """,
                (status.value, end_time, int(session_id), SessionStatus.ACTIVE.value),
            )
            return cur.rowcount > 0

    def recompute_counts(self, session_id: int) -> Optional[SessionCounts]:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                row = _lock_session(cur, session_id)
                if not row:
                    return None
                return _recompute_locked(cur, session_id, int(row["class_id"]))
        except mysql.connector.errors.IntegrityError:
            raise
        except mysql.connector.errors.DatabaseError as e:
            # Deadlocks and lock wait timeouts; the transaction was rolled back.
            logger.warning("recompute of session %s failed: %s", session_id, e)
            raise RecomputeFailed(str(e)) from e

    def apply_marks(
        self,
        *,
        session_id: int,
        marks: Sequence[PendingMark],
        marked_at: datetime,
        require_active: bool = True,
    ) -> Optional[AppliedMarks]:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                row = _lock_session(cur, session_id)
                if not row:
                    return None
                status = SessionStatus(row["status"])
                if require_active and status.is_terminal:
                    return AppliedMarks(session_status=status)

                records = tuple(
                    insert_record_once(cur, session_id=session_id, mark=m, marked_at=marked_at)
                    if m.write_once
                    else upsert_record(cur, session_id=session_id, mark=m, marked_at=marked_at)
                    for m in marks
                )
                counts = _recompute_locked(cur, session_id, int(row["class_id"]))
                return AppliedMarks(session_status=status, records=records, counts=counts)
        except mysql.connector.errors.IntegrityError:
            raise
        except mysql.connector.errors.DatabaseError as e:
            logger.warning("marking session %s failed: %s", session_id, e)
            raise RecomputeFailed(str(e)) from e

    def list_sessions(
        self,
        *,
        class_id: Optional[int] = None,
        teacher_id: Optional[int] = None,
        status: Optional[SessionStatus] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> Sequence[AttendanceSession]:
        clauses = ["1=1"]
        params: list[object] = []

        if class_id is not None:
            clauses.append("class_id=%s")
            params.append(int(class_id))
        if teacher_id is not None:
            clauses.append("teacher_id=%s")
            params.append(int(teacher_id))
        if status is not None:
            clauses.append("status=%s")
            params.append(status.value)

        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_SESSION_COLUMNS}
                FROM attendance_sessions
                WHERE {where}
                ORDER BY session_date DESC, start_time DESC
                LIMIT %s
                """,
                tuple(params + [int(limit)]),
            )
            return [_row_to_session(r) for r in fetchall(cur)]

    def delete(self, session_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM attendance_sessions WHERE session_id=%s", (int(session_id),))
            return cur.rowcount > 0
