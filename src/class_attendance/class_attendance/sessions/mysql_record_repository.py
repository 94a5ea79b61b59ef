from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

import mysql.connector
from mysql.connector import errorcode

from ..core.enums import AttendanceStatus, MarkOrigin
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import AttendanceRecord, PendingMark
from .repository import RecordRepository

_RECORD_SELECT = """
    SELECT record_id, session_id, student_id, status, marked_at, marked_by, notes
    FROM attendance_records
"""


def row_to_record(r: dict) -> AttendanceRecord:
    return AttendanceRecord(
        record_id=int(r["record_id"]),
        session_id=int(r["session_id"]),
        student_id=int(r["student_id"]),
        status=AttendanceStatus(r["status"]),
        marked_at=r["marked_at"],
        origin=MarkOrigin(r["marked_by"]),
        notes=r.get("notes"),
    )


def insert_record_once(cur, *, session_id: int, mark: PendingMark, marked_at: datetime) -> Optional[AttendanceRecord]:
    """Insert on the caller's cursor; None when the pair already has a record."""

    try:
        cur.execute(
            """
            INSERT INTO attendance_records(session_id, student_id, status, marked_at, marked_by, notes)
            VALUES(%s,%s,%s,%s,%s,%s)
            """,
            (int(session_id), int(mark.student_id), mark.status.value, marked_at, mark.origin.value, mark.notes),
        )
    except mysql.connector.errors.IntegrityError as e:
        if e.errno != errorcode.ER_DUP_ENTRY:
            raise
        # uq_records_session_student: somebody marked this student first.
        return None
    return AttendanceRecord(
        record_id=int(cur.lastrowid),
        session_id=int(session_id),
        student_id=int(mark.student_id),
        status=mark.status,
        marked_at=marked_at,
        origin=mark.origin,
        notes=mark.notes,
    )


def upsert_record(cur, *, session_id: int, mark: PendingMark, marked_at: datetime) -> AttendanceRecord:
    """Insert or overwrite on the caller's cursor and read the stored row back."""

    cur.execute(
        """
        INSERT INTO attendance_records(session_id, student_id, status, marked_at, marked_by, notes)
        VALUES(%s,%s,%s,%s,%s,%s)
        ON DUPLICATE KEY UPDATE
            status=VALUES(status), marked_at=VALUES(marked_at),
            marked_by=VALUES(marked_by), notes=VALUES(notes)
        """,
        (int(session_id), int(mark.student_id), mark.status.value, marked_at, mark.origin.value, mark.notes),
    )
    cur.execute(
        _RECORD_SELECT + " WHERE session_id=%s AND student_id=%s",
        (int(session_id), int(mark.student_id)),
    )
    return row_to_record(fetchone(cur))


def select_session_records(cur, session_id: int) -> list[AttendanceRecord]:
    cur.execute(_RECORD_SELECT + " WHERE session_id=%s ORDER BY student_id ASC", (int(session_id),))
    return [row_to_record(r) for r in fetchall(cur)]


class MySQLRecordRepository(RecordRepository):
    """Reads only; writes go through ``MySQLSessionRepository.apply_marks``."""

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, *, session_id: int, student_id: int) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _RECORD_SELECT + " WHERE session_id=%s AND student_id=%s",
                (int(session_id), int(student_id)),
            )
            r = fetchone(cur)
            return row_to_record(r) if r else None

    def list_for_session(self, session_id: int) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            return select_session_records(cur, session_id)
