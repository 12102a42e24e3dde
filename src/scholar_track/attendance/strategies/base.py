from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ...core.enums import AttendanceStatus
from ..model import CaptureEvent


@dataclass(frozen=True)
class StatusDecision:
    status: AttendanceStatus
    explicit: bool = False


class StatusStrategy(ABC):
    """Strategy Pattern: encapsulate how a capture event maps to a status."""

    @abstractmethod
    def decide(self, event: CaptureEvent) -> StatusDecision:
        raise NotImplementedError
