from __future__ import annotations

from typing import AbstractSet, Optional, Sequence

from ..core.enums import EnrollmentStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Enrollment
from .repository import RosterRepository


def _row_to_enrollment(r: dict) -> Enrollment:
    return Enrollment(
        class_id=int(r["class_id"]),
        student_id=int(r["student_id"]),
        status=EnrollmentStatus(r["status"]),
        requested_at=r.get("requested_at"),
        decided_at=r.get("decided_at"),
        student_name=r.get("full_name"),
    )


class MySQLRosterRepository(RosterRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def enrolled_student_ids(self, class_id: int) -> AbstractSet[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT student_id FROM class_enrollments WHERE class_id=%s AND status=%s",
                (int(class_id), EnrollmentStatus.ENROLLED.value),
            )
            return frozenset(int(r["student_id"]) for r in fetchall(cur))

    def get(self, *, class_id: int, student_id: int) -> Optional[Enrollment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT class_id, student_id, status, requested_at, decided_at
                FROM class_enrollments
                WHERE class_id=%s AND student_id=%s
                """,
                (int(class_id), int(student_id)),
            )
            r = fetchone(cur)
            return _row_to_enrollment(r) if r else None

    def create_request(self, *, class_id: int, student_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT IGNORE INTO class_enrollments(class_id, student_id, status)
                VALUES(%s,%s,%s)
                """,
                (int(class_id), int(student_id), EnrollmentStatus.PENDING.value),
            )
            return cur.rowcount > 0

    def decide(self, *, class_id: int, student_id: int, status: EnrollmentStatus) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE class_enrollments
                SET status=%s, decided_at=NOW()
                WHERE class_id=%s AND student_id=%s AND status=%s
                """,
                (status.value, int(class_id), int(student_id), EnrollmentStatus.PENDING.value),
            )
            return cur.rowcount > 0

    def enroll(self, *, class_id: int, student_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO class_enrollments(class_id, student_id, status, decided_at)
                VALUES(%s,%s,%s,NOW())
                ON DUPLICATE KEY UPDATE
                    decided_at=IF(status=VALUES(status), decided_at, NOW()),
                    status=VALUES(status)
                """,
                (int(class_id), int(student_id), EnrollmentStatus.ENROLLED.value),
            )
            # MySQL reports 0 affected rows when the duplicate row is left unchanged.
            return cur.rowcount > 0

    def remove(self, *, class_id: int, student_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "DELETE FROM class_enrollments WHERE class_id=%s AND student_id=%s",
                (int(class_id), int(student_id)),
            )
            return cur.rowcount > 0

    def list_members(self, *, class_id: int, status: Optional[EnrollmentStatus] = None) -> Sequence[Enrollment]:
        clauses = ["e.class_id=%s"]
        params: list[object] = [int(class_id)]
        if status is not None:
            clauses.append("e.status=%s")
            params.append(status.value)

        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT e.class_id, e.student_id, e.status, e.requested_at, e.decided_at, u.full_name
                FROM class_enrollments e
                JOIN users u ON u.user_id = e.student_id
                WHERE {where}
                ORDER BY u.full_name ASC
                """,
                tuple(params),
            )
            return [_row_to_enrollment(r) for r in fetchall(cur)]
