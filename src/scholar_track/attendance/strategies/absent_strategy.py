from __future__ import annotations

from ...core.enums import AttendanceStatus
from ..model import CaptureEvent
from .base import StatusDecision, StatusStrategy


class AbsentStrategy(StatusStrategy):
    """No photo captured."""

    def decide(self, event: CaptureEvent) -> StatusDecision:
        return StatusDecision(status=AttendanceStatus.ABSENT)
