from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User role used for authorization."""

    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


class AttendanceStatus(str, Enum):
    """Canonical attendance status stored in the database."""

    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EXCUSED = "excused"


class WriteOutcome(str, Enum):
    APPLIED = "applied"
    REJECTED = "rejected"


class RejectReason(str, Enum):
    SESSION_CLOSED = "session_closed"


class SessionPolicy(str, Enum):
    """Whether a (class, date) session closes on its own at day rollover."""

    SAME_DAY = "same_day"
    SAME_DAY_BACKFILL = "same_day_backfill"
    UNTIL_FINALIZED = "until_finalized"


class Standing(str, Enum):
    """Attendance-rate bucket shown next to each student."""

    GOOD = "Good"
    AVERAGE = "Average"
    POOR = "Poor"
    NO_DATA = "No Data"
