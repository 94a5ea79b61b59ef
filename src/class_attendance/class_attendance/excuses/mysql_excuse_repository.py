from __future__ import annotations

from typing import Optional, Sequence

import mysql.connector
from mysql.connector import errorcode

from ..core.constants import DEFAULT_LIST_LIMIT
from ..core.enums import ExcuseStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import ExcuseRequest
from .repository import ExcuseRepository

_EXCUSE_COLUMNS = """
    x.request_id, x.student_id, x.session_id, x.reason, x.status,
    x.submitted_at, x.reviewed_at, x.reviewed_by, x.review_notes
"""


def _row_to_excuse(r: dict) -> ExcuseRequest:
    return ExcuseRequest(
        request_id=int(r["request_id"]),
        student_id=int(r["student_id"]),
        session_id=int(r["session_id"]),
        reason=r["reason"],
        status=ExcuseStatus(r["status"]),
        submitted_at=r["submitted_at"],
        reviewed_at=r.get("reviewed_at"),
        reviewed_by=r.get("reviewed_by"),
        review_notes=r.get("review_notes"),
    )


class MySQLExcuseRepository(ExcuseRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create(self, *, student_id: int, session_id: int, reason: str) -> Optional[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            try:
                cur.execute(
                    """
                    INSERT INTO excuse_requests(student_id, session_id, reason, status)
                    VALUES(%s,%s,%s,%s)
                    """,
                    (int(student_id), int(session_id), reason, ExcuseStatus.PENDING.value),
                )
            except mysql.connector.errors.IntegrityError as e:
                if e.errno != errorcode.ER_DUP_ENTRY:
                    raise
                return None
            return int(cur.lastrowid)

    def get(self, request_id: int) -> Optional[ExcuseRequest]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_EXCUSE_COLUMNS} FROM excuse_requests x WHERE x.request_id=%s",
                (int(request_id),),
            )
            r = fetchone(cur)
            return _row_to_excuse(r) if r else None

    def decide(
        self,
        *,
        request_id: int,
        status: ExcuseStatus,
        reviewed_by: int,
        review_notes: Optional[str] = None,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE excuse_requests
                SET status=%s, reviewed_by=%s, reviewed_at=NOW(), review_notes=%s
                WHERE request_id=%s AND status=%s
                """,
                (status.value, int(reviewed_by), review_notes, int(request_id), ExcuseStatus.PENDING.value),
            )
            return cur.rowcount > 0

    def reopen(self, request_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE excuse_requests
                SET status=%s, reviewed_by=NULL, reviewed_at=NULL, review_notes=NULL
                WHERE request_id=%s AND status=%s
                """,
                (ExcuseStatus.PENDING.value, int(request_id), ExcuseStatus.APPROVED.value),
            )
            return cur.rowcount > 0

    def list_requests(
        self,
        *,
        status: Optional[ExcuseStatus] = None,
        student_id: Optional[int] = None,
        class_id: Optional[int] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> Sequence[ExcuseRequest]:
        clauses = ["1=1"]
        params: list[object] = []

        if status is not None:
            clauses.append("x.status=%s")
            params.append(status.value)
        if student_id is not None:
            clauses.append("x.student_id=%s")
            params.append(int(student_id))
        if class_id is not None:
            clauses.append("s.class_id=%s")
            params.append(int(class_id))

        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_EXCUSE_COLUMNS}
                FROM excuse_requests x
                JOIN attendance_sessions s ON s.session_id = x.session_id
                WHERE {where}
                ORDER BY x.submitted_at DESC
                LIMIT %s
                """,
                tuple(params + [int(limit)]),
            )
            return [_row_to_excuse(r) for r in fetchall(cur)]
