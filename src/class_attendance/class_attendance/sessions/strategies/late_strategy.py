from __future__ import annotations

from datetime import datetime

from ...core.enums import AttendanceStatus
from ..model import AttendanceSession
from .base import CheckInStrategy, StatusDecision


class LateStrategy(CheckInStrategy):
    """Late check-in."""

    def decide_check_in(self, *, now: datetime, session: AttendanceSession) -> StatusDecision:
        start = datetime.combine(session.session_date, session.start_time)
        minutes = max(int((now - start).total_seconds() // 60), 0)
        return StatusDecision(status=AttendanceStatus.LATE, note=f"Checked in {minutes} min after start")
