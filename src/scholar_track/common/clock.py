from __future__ import annotations

from datetime import date
from typing import Protocol

from .datetime_utils import now_local


class Clock(Protocol):
    def today(self) -> date:
        raise NotImplementedError


class SystemClock:
    """Clock backed by local wall time."""

    def today(self) -> date:
        return now_local().date()
