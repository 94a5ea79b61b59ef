from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from datetime import date
from typing import Optional

from ..core.enums import AttendanceStatus
from ..core.exceptions import ValidationError
from .repository import ReportRepository

CSV_FIELDS = [
    "session_date",
    "class_name",
    "session_name",
    "student_id",
    "student_name",
    "status",
    "marked_at",
    "marked_by",
    "notes",
]


@dataclass(frozen=True)
class ReportData:
    rows: list[dict]
    summary: list[dict]


class AttendanceReportService:
    def __init__(self, reports: ReportRepository):
        self._reports = reports

    def build_report(
        self,
        *,
        start: date,
        end: date,
        class_id: Optional[int] = None,
        student_id: Optional[int] = None,
        teacher_id: Optional[int] = None,
        status: Optional[AttendanceStatus] = None,
    ) -> ReportData:
        if end < start:
            raise ValidationError("End date cannot be before start date")

        query_rows = self._reports.get_report_rows(
            start_date=start,
            end_date=end,
            class_id=class_id,
            student_id=student_id,
            teacher_id=teacher_id,
            status=status,
        )

        summary_map: dict[int, dict] = {}
        out_rows: list[dict] = []

        for r in query_rows:
            out_rows.append(
                {
                    "session_date": r.session_date.strftime("%Y-%m-%d"),
                    "class_name": r.class_name,
                    "session_name": r.session_name,
                    "student_id": r.student_id,
                    "student_name": r.student_name,
                    "status": r.status.value,
                    "marked_at": r.marked_at.strftime("%Y-%m-%d %H:%M"),
                    "marked_by": r.origin.value,
                    "notes": r.notes or "",
                }
            )

            s = summary_map.get(r.student_id)
            if not s:
                s = {"student_id": r.student_id, "student_name": r.student_name, "total": 0}
                s.update({status.value: 0 for status in AttendanceStatus})
                summary_map[r.student_id] = s
            s[r.status.value] += 1
            s["total"] += 1

        summary = []
        for s in summary_map.values():
            attended = s[AttendanceStatus.PRESENT.value] + s[AttendanceStatus.LATE.value]
            s["attendance_rate"] = round(attended / s["total"] * 100, 1) if s["total"] else 0.0
            summary.append(s)

        summary.sort(key=lambda x: (-x["attendance_rate"], x["student_name"]))
        return ReportData(rows=out_rows, summary=summary)

    @staticmethod
    def to_csv(data: ReportData) -> bytes:
        """Report rows as CSV bytes (UTF-8 with BOM so spreadsheet apps detect it)."""

        out = io.StringIO()
        writer = csv.DictWriter(out, fieldnames=CSV_FIELDS)
        writer.writeheader()
        for row in data.rows:
            writer.writerow(row)
        return out.getvalue().encode("utf-8-sig")
