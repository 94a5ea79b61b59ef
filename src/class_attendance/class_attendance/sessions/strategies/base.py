from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ...core.enums import AttendanceStatus
from ..model import AttendanceSession


@dataclass(frozen=True)
class StatusDecision:
    status: AttendanceStatus
    note: Optional[str] = None


class CheckInStrategy(ABC):
    """Strategy Pattern: encapsulate how a self check-in status is decided."""

    @abstractmethod
    def decide_check_in(self, *, now: datetime, session: AttendanceSession) -> StatusDecision:
        raise NotImplementedError
