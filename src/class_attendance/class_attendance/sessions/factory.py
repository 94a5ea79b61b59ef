from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from .model import AttendanceSession
from .strategies.base import CheckInStrategy
from .strategies.late_strategy import LateStrategy
from .strategies.on_time_strategy import OnTimeStrategy


@dataclass
class CheckInStrategyFactory:
    """Factory Pattern: choose the check-in strategy from the session's late rules."""

    def for_check_in(self, *, now: datetime, session: AttendanceSession) -> CheckInStrategy:
        start = datetime.combine(session.session_date, session.start_time)
        deadline = start
        if session.allow_late:
            deadline = start + timedelta(minutes=session.late_minutes_allowed)

        if now <= deadline:
            return OnTimeStrategy()
        return LateStrategy()
