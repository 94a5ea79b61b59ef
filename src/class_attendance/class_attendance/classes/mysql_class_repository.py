from __future__ import annotations

from typing import Optional, Sequence

import mysql.connector
from mysql.connector import errorcode

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import SchoolClass
from .repository import ClassRepository

_CLASS_SELECT = """
    SELECT class_id, teacher_id, class_name, class_code, course, section, year, subject, description, is_active
    FROM classes
"""


def _row_to_class(r: dict) -> SchoolClass:
    return SchoolClass(
        class_id=int(r["class_id"]),
        teacher_id=int(r["teacher_id"]),
        class_name=r["class_name"],
        class_code=r["class_code"],
        course=r["course"],
        section=r["section"],
        year=r["year"],
        subject=r.get("subject"),
        description=r.get("description"),
        is_active=bool(r.get("is_active", True)),
    )


class MySQLClassRepository(ClassRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, class_id: int) -> Optional[SchoolClass]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_CLASS_SELECT + " WHERE class_id=%s", (int(class_id),))
            r = fetchone(cur)
            return _row_to_class(r) if r else None

    def code_exists(self, class_code: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT 1 AS hit FROM classes WHERE class_code=%s LIMIT 1", (class_code,))
            return fetchone(cur) is not None

    def create(
        self,
        *,
        teacher_id: int,
        class_name: str,
        class_code: str,
        course: str,
        section: str,
        year: str,
        subject: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Optional[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            try:
                cur.execute(
                    """
                    INSERT INTO classes(
                        teacher_id, class_name, class_code, course, section, year, subject, description, is_active
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,1)
                    """,
                    (int(teacher_id), class_name, class_code, course, section, year, subject, description),
                )
            except mysql.connector.errors.IntegrityError as e:
                if e.errno != errorcode.ER_DUP_ENTRY:
                    raise
                # uq_classes_code
                return None
            return int(cur.lastrowid)

    def update(
        self,
        *,
        class_id: int,
        class_name: str,
        class_code: str,
        course: str,
        section: str,
        year: str,
        subject: Optional[str] = None,
        description: Optional[str] = None,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE classes
                SET class_name=%s, class_code=%s, course=%s, section=%s, year=%s, subject=%s, description=%s
                WHERE class_id=%s
                """,
                (class_name, class_code, course, section, year, subject, description, int(class_id)),
            )
            return cur.rowcount > 0

    def set_active(self, *, class_id: int, is_active: bool) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE classes SET is_active=%s WHERE class_id=%s", (1 if is_active else 0, int(class_id)))
            return cur.rowcount > 0

    def list_classes(self, *, teacher_id: Optional[int] = None, include_inactive: bool = False) -> Sequence[SchoolClass]:
        clauses = ["1=1"]
        params: list[object] = []
        if teacher_id is not None:
            clauses.append("teacher_id=%s")
            params.append(int(teacher_id))
        if not include_inactive:
            clauses.append("is_active=1")

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _CLASS_SELECT + f" WHERE {' AND '.join(clauses)} ORDER BY class_name ASC, class_id ASC",
                tuple(params),
            )
            return [_row_to_class(r) for r in fetchall(cur)]
