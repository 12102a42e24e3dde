from __future__ import annotations

from ..model import CaptureEvent
from .base import StatusDecision, StatusStrategy


class ExplicitStatusStrategy(StatusStrategy):
    """Caller chose the status (late with a photo, excused, back-filled present...)."""

    def decide(self, event: CaptureEvent) -> StatusDecision:
        return StatusDecision(status=event.status, explicit=True)
