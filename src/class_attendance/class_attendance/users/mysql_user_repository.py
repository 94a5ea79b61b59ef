from __future__ import annotations

from typing import Optional, Sequence

from ..core.enums import Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import User
from .repository import UserRepository

_USER_SELECT = """
    SELECT user_id, full_name, role, email, student_number, is_active
    FROM users
"""


def _row_to_user(r: dict) -> User:
    return User(
        user_id=int(r["user_id"]),
        full_name=r["full_name"],
        role=Role(r["role"]),
        email=r.get("email"),
        student_number=r.get("student_number"),
        is_active=bool(r.get("is_active", True)),
    )


class MySQLUserRepository(UserRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _get_one(self, where: str, value) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_USER_SELECT + f" WHERE {where}=%s", (value,))
            r = fetchone(cur)
            return _row_to_user(r) if r else None

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self._get_one("user_id", int(user_id))

    def get_by_email(self, email: str) -> Optional[User]:
        return self._get_one("email", email)

    def get_by_student_number(self, student_number: str) -> Optional[User]:
        return self._get_one("student_number", student_number)

    def create_user(
        self,
        *,
        full_name: str,
        role: Role,
        email: Optional[str],
        student_number: Optional[str],
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO users(full_name, role, email, student_number, is_active)
                VALUES(%s,%s,%s,%s,1)
                """,
                (full_name, role.value, email, student_number),
            )
            return int(cur.lastrowid)

    def update_user(
        self,
        *,
        user_id: int,
        full_name: str,
        email: Optional[str],
        student_number: Optional[str],
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE users SET full_name=%s, email=%s, student_number=%s WHERE user_id=%s",
                (full_name, email, student_number, int(user_id)),
            )
            # rowcount is 0 when nothing changed, so existence is checked by the service.
            return cur.rowcount > 0

    def set_active(self, *, user_id: int, is_active: bool) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE users SET is_active=%s WHERE user_id=%s", (1 if is_active else 0, int(user_id)))
            return cur.rowcount > 0

    def list_users(self, *, role: Optional[Role] = None, include_inactive: bool = False) -> Sequence[User]:
        clauses = ["1=1"]
        params: list[object] = []
        if role is not None:
            clauses.append("role=%s")
            params.append(role.value)
        if not include_inactive:
            clauses.append("is_active=1")

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _USER_SELECT + f" WHERE {' AND '.join(clauses)} ORDER BY full_name ASC, user_id ASC",
                tuple(params),
            )
            return [_row_to_user(r) for r in fetchall(cur)]
