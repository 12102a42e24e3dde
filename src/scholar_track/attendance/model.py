from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from ..core.enums import AttendanceStatus, RejectReason, WriteOutcome


@dataclass(frozen=True)
class CaptureEvent:
    """One student's input in a submission batch (photo and/or explicit status)."""

    student_id: str
    photo: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[AttendanceStatus] = None

    @property
    def has_photo(self) -> bool:
        return bool(self.photo and self.photo.strip())


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one student's attendance in one class on one date."""

    student_id: str
    class_id: str
    attendance_date: date
    status: AttendanceStatus
    explicit_status: Optional[AttendanceStatus]
    had_photo: bool
    photo: Optional[str] = None
    notes: Optional[str] = None
    marked_by: Optional[str] = None
    topic_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    student_name: Optional[str] = None


@dataclass(frozen=True)
class UpsertResult:
    applied: bool
    reason: Optional[RejectReason] = None


@dataclass(frozen=True)
class SessionMarker:
    class_id: str
    session_date: date
    finalized_by: Optional[str]
    finalized_at: Optional[datetime]


@dataclass(frozen=True)
class SessionState:
    class_id: str
    session_date: date
    is_open: bool
    is_finalized: bool
    finalized_by: Optional[str] = None
    finalized_at: Optional[datetime] = None
    records: list[AttendanceRecord] = field(default_factory=list)


@dataclass(frozen=True)
class StudentResult:
    student_id: str
    outcome: WriteOutcome
    status: AttendanceStatus
    reason: Optional[RejectReason] = None


@dataclass(frozen=True)
class BatchResult:
    class_id: str
    attendance_date: date
    results: list[StudentResult]

    @property
    def applied_count(self) -> int:
        return sum(1 for r in self.results if r.outcome == WriteOutcome.APPLIED)

    @property
    def rejected_count(self) -> int:
        return sum(1 for r in self.results if r.outcome == WriteOutcome.REJECTED)


@dataclass(frozen=True)
class StudentAttendanceRow:
    """Flat enrollment x attendance join row.

    One row per (enrollment x attendance record) pair, so a student may appear
    many times. Attendance columns are None for enrollments with no record in
    the window.
    """

    student_id: str
    name: str
    roll_number: str
    class_id: str
    class_name: str
    section: Optional[str]
    enrolled_at: Optional[datetime]
    enrollment_status: str
    attendance_class_id: Optional[str] = None
    attendance_date: Optional[date] = None
    status: Optional[AttendanceStatus] = None
    photo: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class StudentAttendanceAggregate:
    """One student's attendance in scope, already grouped by student.

    Each (class, date) record counts once however many enrollments join it.
    Rate and standing are derived by the report layer.
    """

    student_id: str
    name: str
    roll_number: str
    class_name: str
    section: Optional[str]
    enrolled_at: Optional[datetime]
    enrollment_status: str
    present_count: int = 0
    late_count: int = 0
    absent_count: int = 0
    excused_count: int = 0
    total_sessions: int = 0
    latest_photo: Optional[str] = None
