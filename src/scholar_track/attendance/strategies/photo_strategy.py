from __future__ import annotations

from ...core.enums import AttendanceStatus
from ..model import CaptureEvent
from .base import StatusDecision, StatusStrategy


class PhotoStrategy(StatusStrategy):
    """A captured photo counts as present."""

    def decide(self, event: CaptureEvent) -> StatusDecision:
        return StatusDecision(status=AttendanceStatus.PRESENT)
