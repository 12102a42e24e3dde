from __future__ import annotations

from dataclasses import dataclass

from .model import CaptureEvent
from .strategies.absent_strategy import AbsentStrategy
from .strategies.base import StatusDecision, StatusStrategy
from .strategies.explicit_strategy import ExplicitStatusStrategy
from .strategies.photo_strategy import PhotoStrategy


@dataclass
class StatusStrategyFactory:
    """Factory Pattern: choose appropriate strategy based on rules.

    An explicit status always wins; otherwise photo presence decides.
    """

    def for_capture(self, event: CaptureEvent) -> StatusStrategy:
        if event.status is not None:
            return ExplicitStatusStrategy()
        if event.has_photo:
            return PhotoStrategy()
        return AbsentStrategy()


def derive_status(event: CaptureEvent, *, factory: StatusStrategyFactory | None = None) -> StatusDecision:
    factory = factory or StatusStrategyFactory()
    return factory.for_capture(event).decide(event)
