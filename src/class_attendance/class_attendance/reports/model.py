from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import AttendanceStatus, MarkOrigin


@dataclass(frozen=True)
class AttendanceReportRow:
    """Read-model for reports/exports (shaped for the query, not the domain)."""

    session_id: int
    session_name: str
    session_date: date
    class_id: int
    class_name: str
    student_id: int
    student_name: str
    status: AttendanceStatus
    marked_at: datetime
    origin: MarkOrigin
    notes: Optional[str] = None
