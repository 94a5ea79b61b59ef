from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

from ..core.enums import AttendanceStatus, MarkOrigin
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall
from .model import AttendanceReportRow
from .repository import ReportRepository


class MySQLReportRepository(ReportRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_report_rows(
        self,
        *,
        start_date: date,
        end_date: date,
        class_id: Optional[int] = None,
        student_id: Optional[int] = None,
        teacher_id: Optional[int] = None,
        status: Optional[AttendanceStatus] = None,
    ) -> Sequence[AttendanceReportRow]:
        clauses = ["s.session_date BETWEEN %s AND %s"]
        params: list[object] = [start_date, end_date]

        if class_id is not None:
            clauses.append("s.class_id=%s")
            params.append(int(class_id))
        if student_id is not None:
            clauses.append("r.student_id=%s")
            params.append(int(student_id))
        if teacher_id is not None:
            clauses.append("s.teacher_id=%s")
            params.append(int(teacher_id))
        if status is not None:
            clauses.append("r.status=%s")
            params.append(status.value)

        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT
                    s.session_id, s.session_name, s.session_date,
                    c.class_id, c.class_name,
                    u.user_id AS student_id, u.full_name AS student_name,
                    r.status, r.marked_at, r.marked_by, r.notes
                FROM attendance_records r
                JOIN attendance_sessions s ON s.session_id = r.session_id
                JOIN classes c ON c.class_id = s.class_id
                JOIN users u ON u.user_id = r.student_id
                WHERE {where}
                ORDER BY s.session_date DESC, c.class_name ASC, u.full_name ASC
                """,
                tuple(params),
            )
            rows = fetchall(cur)

            return [
                AttendanceReportRow(
                    session_id=int(r["session_id"]),
                    session_name=r["session_name"],
                    session_date=r["session_date"],
                    class_id=int(r["class_id"]),
                    class_name=r["class_name"],
                    student_id=int(r["student_id"]),
                    student_name=r["student_name"],
                    status=AttendanceStatus(r["status"]),
                    marked_at=r["marked_at"],
                    origin=MarkOrigin(r["marked_by"]),
                    notes=r.get("notes"),
                )
                for r in rows
            ]
