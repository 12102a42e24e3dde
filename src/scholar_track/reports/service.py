from __future__ import annotations

import csv
import io
import logging
from datetime import date, timedelta
from typing import Optional

from ..attendance.repository import AttendanceRepository
from ..common.clock import Clock, SystemClock
from ..common.datetime_utils import coerce_date
from ..common.validators import optional_text
from ..core.constants import ATTENTION_LIST_LIMIT, DEFAULT_ATTENTION_THRESHOLD, DEFAULT_LOOKBACK_DAYS, DEFAULT_WEEKLY_DAYS
from ..core.exceptions import ValidationError
from .model import AttentionRow, DailyAttendance, StudentSummary
from .summary import attendance_rate, summary_from_aggregate

logger = logging.getLogger(__name__)

REPORT_FIELDS = [
    "Student Name",
    "Roll Number",
    "Class",
    "Section",
    "Present Days",
    "Late Days",
    "Absent Days",
    "Total Days",
    "Attendance Rate",
]


class AttendanceReportService:
    def __init__(
        self,
        attendance: AttendanceRepository,
        *,
        clock: Clock | None = None,
        lookback_days: int = DEFAULT_LOOKBACK_DAYS,
        attention_threshold: float = DEFAULT_ATTENTION_THRESHOLD,
    ):
        self._attendance = attendance
        self._clock = clock or SystemClock()
        self._lookback_days = int(lookback_days)
        self._attention_threshold = float(attention_threshold)

    def _window(self, days: int) -> tuple[date, date]:
        if days <= 0:
            raise ValidationError("days must be positive")
        end = self._clock.today()
        return end - timedelta(days=days - 1), end

    def _summaries(
        self,
        start: date,
        end: date,
        *,
        teacher_id: Optional[str],
        class_id: Optional[str],
    ) -> list[StudentSummary]:
        aggregates = self._attendance.get_student_aggregates(
            start_date=start, end_date=end, teacher_id=teacher_id, class_id=class_id
        )
        summaries = [summary_from_aggregate(a) for a in aggregates]
        summaries.sort(key=lambda s: (s.name.lower(), s.student_id))
        return summaries

    def students_with_attendance(
        self,
        *,
        teacher_id: Optional[str] = None,
        class_id: Optional[str] = None,
        days: Optional[int] = None,
        search: Optional[str] = None,
    ) -> list[StudentSummary]:
        start, end = self._window(days or self._lookback_days)
        summaries = self._summaries(start, end, teacher_id=teacher_id, class_id=class_id)

        needle = (optional_text(search) or "").lower()
        if needle:
            summaries = [s for s in summaries if needle in s.name.lower() or needle in s.roll_number.lower()]
        return summaries

    def weekly_attendance(
        self,
        *,
        teacher_id: Optional[str] = None,
        class_id: Optional[str] = None,
        days: int = DEFAULT_WEEKLY_DAYS,
    ) -> list[DailyAttendance]:
        start, end = self._window(days)
        total = self._attendance.count_enrolled_students(teacher_id=teacher_id, class_id=class_id)
        present = self._attendance.get_daily_present_counts(
            start_date=start, end_date=end, teacher_id=teacher_id, class_id=class_id
        )

        out: list[DailyAttendance] = []
        for offset in range(days):
            day = start + timedelta(days=offset)
            present_count = present.get(day, 0)
            out.append(
                DailyAttendance(
                    attendance_date=day,
                    day=day.strftime("%a"),
                    total_students=total,
                    present_students=present_count,
                    attendance_rate=attendance_rate(present=present_count, late=0, total=total),
                )
            )
        return out

    def students_requiring_attention(
        self,
        *,
        teacher_id: Optional[str] = None,
        class_id: Optional[str] = None,
        days: int = DEFAULT_WEEKLY_DAYS,
        threshold: Optional[float] = None,
        limit: int = ATTENTION_LIST_LIMIT,
    ) -> list[AttentionRow]:
        """Students below the threshold in the window, worst first.

        Students with no records in the window are listed too, at rate 0.
        """

        cutoff = self._attention_threshold if threshold is None else float(threshold)
        summaries = self.students_with_attendance(teacher_id=teacher_id, class_id=class_id, days=days)

        flagged = [
            AttentionRow(
                student_id=s.student_id,
                name=s.name,
                roll_number=s.roll_number,
                class_name=s.class_name,
                weekly_attendance_rate=s.attendance_rate,
                missed_sessions=s.absent_count,
            )
            for s in summaries
            if s.attendance_rate < cutoff
        ]
        flagged.sort(key=lambda a: (a.weekly_attendance_rate, -a.missed_sessions, a.name.lower()))
        return flagged[:limit]

    def build_attendance_report(
        self,
        *,
        start: date | str,
        end: date | str,
        teacher_id: Optional[str] = None,
        class_id: Optional[str] = None,
    ) -> list[dict]:
        """One row per student with day counts over [start, end]."""

        start = coerce_date(start, "startDate")
        end = coerce_date(end, "endDate")
        if start > end:
            raise ValidationError("startDate must not be after endDate")

        summaries = self._summaries(start, end, teacher_id=teacher_id, class_id=class_id)
        summaries.sort(key=lambda s: (s.class_name, s.roll_number))
        logger.info("Attendance report %s..%s class=%s: %d students", start, end, class_id, len(summaries))
        return [
            {
                "Student Name": s.name,
                "Roll Number": s.roll_number,
                "Class": s.class_name,
                "Section": s.section or "",
                "Present Days": s.present_count,
                "Late Days": s.late_count,
                "Absent Days": s.absent_count,
                "Total Days": s.total_sessions,
                "Attendance Rate": f"{s.attendance_rate}%",
            }
            for s in summaries
        ]

    def attendance_report_csv(
        self,
        *,
        start: date | str,
        end: date | str,
        teacher_id: Optional[str] = None,
        class_id: Optional[str] = None,
    ) -> str:
        out = io.StringIO()
        writer = csv.DictWriter(out, fieldnames=REPORT_FIELDS)
        writer.writeheader()
        for row in self.build_attendance_report(start=start, end=end, teacher_id=teacher_id, class_id=class_id):
            writer.writerow(row)
        return out.getvalue()


def summary_to_dict(s: StudentSummary) -> dict:
    return {
        "id": s.student_id,
        "name": s.name,
        "roll_number": s.roll_number,
        "class_name": s.class_name,
        "section": s.section,
        "enrollment_date": s.enrollment_date.isoformat() if s.enrollment_date else None,
        "enrollment_status": s.enrollment_status,
        "present_count": s.present_count,
        "late_count": s.late_count,
        "absent_count": s.absent_count,
        "excused_count": s.excused_count,
        "total_sessions": s.total_sessions,
        "attendance_rate": s.attendance_rate,
        "status": s.status.value,
        "latest_photo": s.latest_photo,
    }


def daily_to_dict(d: DailyAttendance) -> dict:
    return {
        "date": d.attendance_date.strftime("%Y-%m-%d"),
        "day": d.day,
        "total_students": d.total_students,
        "present_students": d.present_students,
        "attendance_rate": d.attendance_rate,
    }


def attention_to_dict(a: AttentionRow) -> dict:
    return {
        "id": a.student_id,
        "name": a.name,
        "roll_number": a.roll_number,
        "class_name": a.class_name,
        "weekly_attendance_rate": a.weekly_attendance_rate,
        "missed_sessions": a.missed_sessions,
    }
