from __future__ import annotations

from datetime import datetime

from ...core.enums import AttendanceStatus
from ..model import AttendanceSession
from .base import CheckInStrategy, StatusDecision


class OnTimeStrategy(CheckInStrategy):
    """Check-in at or before the start, or inside the late allowance."""

    def decide_check_in(self, *, now: datetime, session: AttendanceSession) -> StatusDecision:
        return StatusDecision(status=AttendanceStatus.PRESENT)
