from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import Standing


@dataclass(frozen=True)
class StudentSummary:
    """One row per distinct student in scope."""

    student_id: str
    name: str
    roll_number: str
    class_name: str
    section: Optional[str]
    enrollment_date: Optional[datetime]
    enrollment_status: str
    present_count: int
    late_count: int
    absent_count: int
    excused_count: int
    total_sessions: int
    attendance_rate: float
    status: Standing
    latest_photo: Optional[str] = None


@dataclass(frozen=True)
class DailyAttendance:
    attendance_date: date
    day: str
    total_students: int
    present_students: int
    attendance_rate: float


@dataclass(frozen=True)
class AttentionRow:
    student_id: str
    name: str
    roll_number: str
    class_name: str
    weekly_attendance_rate: float
    missed_sessions: int
