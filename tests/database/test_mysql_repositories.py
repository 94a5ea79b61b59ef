from datetime import datetime

import mysql.connector
import pytest
from mysql.connector import errorcode

from src.class_attendance.class_attendance.classes.mysql_class_repository import MySQLClassRepository
from src.class_attendance.class_attendance.core.enums import AttendanceStatus, MarkOrigin, SessionStatus
from src.class_attendance.class_attendance.core.exceptions import RecomputeFailed, StoreUnavailable
from src.class_attendance.class_attendance.excuses.mysql_excuse_repository import MySQLExcuseRepository
from src.class_attendance.class_attendance.sessions.model import PendingMark, SessionCounts
from src.class_attendance.class_attendance.sessions.mysql_record_repository import MySQLRecordRepository
from src.class_attendance.class_attendance.sessions.mysql_session_repository import MySQLSessionRepository

MARKED_AT = datetime(2026, 3, 2, 8, 5)


class ScriptedCursor:
    """Records every statement and answers fetches from a prepared queue."""

    def __init__(self, results=(), fail_on=None):
        self.executed = []
        self._results = list(results)
        self._fail_on = fail_on
        self.lastrowid = 0
        self.rowcount = 0

    def execute(self, sql, params=()):
        sql = " ".join(sql.split())
        self.executed.append((sql, params))
        if self._fail_on and self._fail_on[0] in sql:
            raise self._fail_on[1]
        self.lastrowid += 1
        self.rowcount = 1

    def fetchone(self):
        return self._results.pop(0)

    def fetchall(self):
        return self._results.pop(0)

    def close(self):
        pass

    def statements(self):
        return [sql for sql, _ in self.executed]


class ScriptedConn:
    def __init__(self, cursor):
        self._cursor = cursor
        self.committed = False
        self.rolled_back = False

    def cursor(self, dictionary=True):
        return self._cursor

    def commit(self):
        self.committed = True

    def rollback(self):
        self.rolled_back = True

    def close(self):
        pass


class ScriptedFactory:
    def __init__(self, cursor):
        self.cursor = cursor
        self.conn = ScriptedConn(cursor)

    def connect(self):
        return self.conn


def _record_row(student_id, status="present", marked_by="teacher", record_id=None):
    return {
        "record_id": record_id or student_id,
        "session_id": 7,
        "student_id": student_id,
        "status": status,
        "marked_at": MARKED_AT,
        "marked_by": marked_by,
        "notes": None,
    }


def _enrolled(*student_ids):
    return [{"student_id": s} for s in student_ids]


LOCKED_ACTIVE = {"class_id": 1, "status": "active"}


def test_recompute_locks_the_session_row_first():
    cur = ScriptedCursor([LOCKED_ACTIVE, _enrolled(1, 2), [_record_row(1), _record_row(3, "late")]])
    factory = ScriptedFactory(cur)

    counts = MySQLSessionRepository(factory).recompute_counts(7)

    # student 3 is no longer enrolled, so the late record does not count
    assert counts == SessionCounts(present=1, total_students=2)
    sql = cur.statements()
    assert sql[0].endswith("FOR UPDATE")
    assert sql[-1].startswith("UPDATE attendance_sessions SET present_count=%s")
    assert cur.executed[-1][1] == (1, 0, 0, 0, 2, 7)
    assert factory.conn.committed


def test_recompute_unknown_session_writes_nothing():
    cur = ScriptedCursor([None])

    assert MySQLSessionRepository(ScriptedFactory(cur)).recompute_counts(7) is None
    assert len(cur.executed) == 1


def test_apply_marks_upserts_and_recomputes_in_one_transaction():
    cur = ScriptedCursor(
        [
            LOCKED_ACTIVE,
            _record_row(2, "absent"),
            _enrolled(1, 2),
            [_record_row(2, "absent")],
        ]
    )
    factory = ScriptedFactory(cur)
    mark = PendingMark(student_id=2, status=AttendanceStatus.ABSENT, origin=MarkOrigin.TEACHER)

    applied = MySQLSessionRepository(factory).apply_marks(session_id=7, marks=[mark], marked_at=MARKED_AT)

    sql = cur.statements()
    assert sql[0].endswith("FOR UPDATE")
    assert sql[1].startswith("INSERT INTO attendance_records")
    assert "ON DUPLICATE KEY UPDATE" in sql[1]
    assert sql[-1].startswith("UPDATE attendance_sessions")
    assert applied.session_status == SessionStatus.ACTIVE
    assert applied.records[0].status == AttendanceStatus.ABSENT
    assert applied.counts == SessionCounts(absent=1, total_students=2)
    assert factory.conn.committed


def test_apply_marks_on_closed_session_writes_nothing():
    cur = ScriptedCursor([{"class_id": 1, "status": "completed"}])
    mark = PendingMark(student_id=1, status=AttendanceStatus.PRESENT, origin=MarkOrigin.TEACHER)

    applied = MySQLSessionRepository(ScriptedFactory(cur)).apply_marks(session_id=7, marks=[mark], marked_at=MARKED_AT)

    assert applied.session_status == SessionStatus.COMPLETED
    assert applied.records == ()
    assert applied.counts is None
    assert len(cur.executed) == 1


def test_apply_marks_excuse_may_write_to_closed_session():
    cur = ScriptedCursor(
        [
            {"class_id": 1, "status": "completed"},
            _record_row(1, "excused", "system"),
            _enrolled(1),
            [_record_row(1, "excused", "system")],
        ]
    )
    mark = PendingMark(student_id=1, status=AttendanceStatus.EXCUSED, origin=MarkOrigin.SYSTEM)

    applied = MySQLSessionRepository(ScriptedFactory(cur)).apply_marks(
        session_id=7, marks=[mark], marked_at=MARKED_AT, require_active=False
    )

    assert applied.records[0].origin == MarkOrigin.SYSTEM
    assert applied.counts == SessionCounts(excused=1, total_students=1)


def test_duplicate_check_in_is_reported_not_raised():
    duplicate = mysql.connector.errors.IntegrityError(msg="Duplicate entry", errno=errorcode.ER_DUP_ENTRY)
    cur = ScriptedCursor(
        [LOCKED_ACTIVE, _enrolled(1), [_record_row(1, marked_by="student")]],
        fail_on=("INSERT INTO attendance_records", duplicate),
    )
    factory = ScriptedFactory(cur)
    mark = PendingMark(student_id=1, status=AttendanceStatus.LATE, origin=MarkOrigin.STUDENT)

    applied = MySQLSessionRepository(factory).apply_marks(session_id=7, marks=[mark], marked_at=MARKED_AT)

    assert applied.records == (None,)
    assert "ON DUPLICATE KEY" not in cur.statements()[1]
    assert applied.counts == SessionCounts(present=1, total_students=1)
    assert factory.conn.committed


def test_other_integrity_errors_propagate():
    missing_student = mysql.connector.errors.IntegrityError(
        msg="foreign key", errno=errorcode.ER_NO_REFERENCED_ROW_2
    )
    cur = ScriptedCursor([LOCKED_ACTIVE], fail_on=("INSERT INTO attendance_records", missing_student))
    factory = ScriptedFactory(cur)
    mark = PendingMark(student_id=1, status=AttendanceStatus.PRESENT, origin=MarkOrigin.STUDENT)

    with pytest.raises(mysql.connector.errors.IntegrityError):
        MySQLSessionRepository(factory).apply_marks(session_id=7, marks=[mark], marked_at=MARKED_AT)

    assert factory.conn.rolled_back
    assert not factory.conn.committed


def test_deadlock_on_counts_update_rolls_back_the_marks():
    deadlock = mysql.connector.errors.InternalError(msg="Deadlock found", errno=errorcode.ER_LOCK_DEADLOCK)
    cur = ScriptedCursor(
        [LOCKED_ACTIVE, _record_row(1), _enrolled(1), [_record_row(1)]],
        fail_on=("UPDATE attendance_sessions", deadlock),
    )
    factory = ScriptedFactory(cur)
    mark = PendingMark(student_id=1, status=AttendanceStatus.PRESENT, origin=MarkOrigin.TEACHER)

    with pytest.raises(RecomputeFailed):
        MySQLSessionRepository(factory).apply_marks(session_id=7, marks=[mark], marked_at=MARKED_AT)

    assert factory.conn.rolled_back
    assert not factory.conn.committed


def test_lost_connection_is_store_unavailable():
    lost = mysql.connector.errors.OperationalError(msg="Lost connection", errno=errorcode.CR_SERVER_LOST)
    cur = ScriptedCursor([], fail_on=("FOR UPDATE", lost))

    with pytest.raises(StoreUnavailable):
        MySQLSessionRepository(ScriptedFactory(cur)).recompute_counts(7)


def test_record_repository_reads():
    cur = ScriptedCursor([[_record_row(1), _record_row(2, "late", "student")], None])
    repo = MySQLRecordRepository(ScriptedFactory(cur))

    rows = repo.list_for_session(7)
    missing = repo.get(session_id=7, student_id=9)

    assert [(r.student_id, r.status, r.origin) for r in rows] == [
        (1, AttendanceStatus.PRESENT, MarkOrigin.TEACHER),
        (2, AttendanceStatus.LATE, MarkOrigin.STUDENT),
    ]
    assert "ORDER BY student_id ASC" in cur.statements()[0]
    assert missing is None
    assert cur.executed[1][1] == (7, 9)


def test_excuse_reopen_only_touches_approved_requests():
    cur = ScriptedCursor()

    assert MySQLExcuseRepository(ScriptedFactory(cur)).reopen(5)

    sql, params = cur.executed[0]
    assert "reviewed_by=NULL" in sql
    assert params == ("pending", 5, "approved")


def test_class_create_reports_taken_code():
    taken = mysql.connector.errors.IntegrityError(msg="Duplicate entry", errno=errorcode.ER_DUP_ENTRY)
    cur = ScriptedCursor(fail_on=("INSERT INTO classes", taken))

    class_id = MySQLClassRepository(ScriptedFactory(cur)).create(
        teacher_id=100, class_name="Algebra", class_code="MAT-A-2026", course="Mathematics", section="A", year="2026"
    )

    assert class_id is None
