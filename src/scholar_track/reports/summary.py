"""Group-by-student reduction for roster summaries.

The MySQL store groups by student in SQL. `reduce_student_rows` is the same
reduction over flat enrollment x attendance rows: exactly one aggregate per
student, counting each attendance key (class, date) once.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, Optional

from ..attendance.model import StudentAttendanceAggregate, StudentAttendanceRow
from ..core.constants import AVERAGE_RATE_THRESHOLD, GOOD_RATE_THRESHOLD
from ..core.enums import AttendanceStatus, Standing
from .model import StudentSummary


def attendance_rate(*, present: int, late: int, total: int) -> float:
    if total <= 0:
        return 0
    return round((present + late) * 100 / total, 2)


def standing_for(rate: float, total: int) -> Standing:
    if total <= 0:
        return Standing.NO_DATA
    if rate >= GOOD_RATE_THRESHOLD:
        return Standing.GOOD
    if rate >= AVERAGE_RATE_THRESHOLD:
        return Standing.AVERAGE
    return Standing.POOR


def summary_from_aggregate(a: StudentAttendanceAggregate) -> StudentSummary:
    rate = attendance_rate(present=a.present_count, late=a.late_count, total=a.total_sessions)
    return StudentSummary(
        student_id=a.student_id,
        name=a.name,
        roll_number=a.roll_number,
        class_name=a.class_name,
        section=a.section,
        enrollment_date=a.enrolled_at,
        enrollment_status=a.enrollment_status,
        present_count=a.present_count,
        late_count=a.late_count,
        absent_count=a.absent_count,
        excused_count=a.excused_count,
        total_sessions=a.total_sessions,
        attendance_rate=rate,
        status=standing_for(rate, a.total_sessions),
        latest_photo=a.latest_photo,
    )


def _enrollment_rank(row: StudentAttendanceRow) -> tuple:
    # Active enrollments first, then the most recent one.
    return (row.enrollment_status == "active", row.enrolled_at or datetime.min)


@dataclass
class _Accumulator:
    enrollment: StudentAttendanceRow
    statuses: dict[tuple[str, date], AttendanceStatus] = field(default_factory=dict)
    photo: Optional[str] = None
    photo_rank: Optional[tuple[date, datetime]] = None

    def add(self, row: StudentAttendanceRow) -> None:
        if _enrollment_rank(row) > _enrollment_rank(self.enrollment):
            self.enrollment = row

        if row.attendance_date is None or row.status is None:
            return

        key = (row.attendance_class_id or row.class_id, row.attendance_date)
        self.statuses[key] = row.status

        if row.photo and row.photo.strip():
            rank = (row.attendance_date, row.created_at or datetime.min)
            if self.photo_rank is None or rank > self.photo_rank:
                self.photo = row.photo
                self.photo_rank = rank

    def aggregate(self) -> StudentAttendanceAggregate:
        counts = {s: 0 for s in AttendanceStatus}
        for status in self.statuses.values():
            counts[status] += 1
        e = self.enrollment

        return StudentAttendanceAggregate(
            student_id=e.student_id,
            name=e.name,
            roll_number=e.roll_number,
            class_name=e.class_name,
            section=e.section,
            enrolled_at=e.enrolled_at,
            enrollment_status=e.enrollment_status,
            present_count=counts[AttendanceStatus.PRESENT],
            late_count=counts[AttendanceStatus.LATE],
            absent_count=counts[AttendanceStatus.ABSENT],
            excused_count=counts[AttendanceStatus.EXCUSED],
            total_sessions=len(self.statuses),
            latest_photo=self.photo,
        )


def reduce_student_rows(rows: Iterable[StudentAttendanceRow]) -> list[StudentAttendanceAggregate]:
    """Reduce fanned-out rows to one aggregate per student, sorted by name."""

    by_student: dict[str, _Accumulator] = {}
    for row in rows:
        acc = by_student.get(row.student_id)
        if acc is None:
            acc = _Accumulator(enrollment=row)
            by_student[row.student_id] = acc
        acc.add(row)

    aggregates = [acc.aggregate() for acc in by_student.values()]
    aggregates.sort(key=lambda a: (a.name.lower(), a.student_id))
    return aggregates


def summarize_students(rows: Iterable[StudentAttendanceRow]) -> list[StudentSummary]:
    return [summary_from_aggregate(a) for a in reduce_student_rows(rows)]
