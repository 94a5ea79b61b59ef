from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from ..core.enums import AttendanceStatus
from .model import AttendanceReportRow


class ReportRepository(Protocol):
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
        raise NotImplementedError
