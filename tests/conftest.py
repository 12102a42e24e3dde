from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Optional

import pytest

from scholar_track.attendance.model import (
    AttendanceRecord,
    SessionMarker,
    StudentAttendanceRow,
    UpsertResult,
)
from scholar_track.attendance.service import AttendanceService
from scholar_track.core.enums import AttendanceStatus, RejectReason, SessionPolicy
from scholar_track.reports.service import AttendanceReportService
from scholar_track.reports.summary import reduce_student_rows


@dataclass
class FixedClock:
    current: date

    def today(self) -> date:
        return self.current


@dataclass
class InMemoryRoster:
    members: dict[str, set[str]] = field(default_factory=dict)

    def get_roster(self, class_id: str, on_date: date) -> set[str]:
        return set(self.members.get(class_id, set()))


@dataclass(frozen=True)
class Enrollment:
    student_id: str
    class_id: str
    enrolled_at: datetime
    status: str = "active"


class InMemoryAttendance:
    """Dict-backed store keyed by (student_id, class_id, date)."""

    def __init__(self):
        self.records: dict[tuple[str, str, date], AttendanceRecord] = {}
        self.markers: dict[tuple[str, date], SessionMarker] = {}
        self.students: dict[str, tuple[str, str]] = {}
        self.classes: dict[str, tuple[str, Optional[str], Optional[str]]] = {}
        self.enrollments: list[Enrollment] = []
        self.upsert_calls = 0
        self._lock = threading.Lock()
        self._tick = datetime(2025, 1, 1, 8, 0, 0)

    # -- seeding helpers -------------------------------------------------

    def add_student(self, student_id: str, name: str, roll_number: str) -> None:
        self.students[student_id] = (name, roll_number)

    def add_class(self, class_id: str, name: str, *, section: Optional[str] = None, teacher_id: Optional[str] = None) -> None:
        self.classes[class_id] = (name, section, teacher_id)

    def enroll(self, student_id: str, class_id: str, *, enrolled_at: datetime, status: str = "active") -> None:
        self.enrollments.append(Enrollment(student_id, class_id, enrolled_at, status))

    def put(self, student_id: str, class_id: str, day: date, status: AttendanceStatus, *, photo: Optional[str] = None) -> None:
        now = self._now()
        self.records[(student_id, class_id, day)] = AttendanceRecord(
            student_id=student_id,
            class_id=class_id,
            attendance_date=day,
            status=status,
            explicit_status=None,
            had_photo=bool(photo),
            photo=photo,
            created_at=now,
            updated_at=now,
        )

    def _now(self) -> datetime:
        self._tick += timedelta(seconds=1)
        return self._tick

    # -- AttendanceRepository --------------------------------------------

    def upsert(
        self,
        *,
        student_id: str,
        class_id: str,
        attendance_date: date,
        status: AttendanceStatus,
        explicit_status: Optional[AttendanceStatus],
        had_photo: bool,
        photo: Optional[str],
        notes: Optional[str],
        marked_by: Optional[str],
        topic_id: Optional[str] = None,
        allow_update: bool = True,
    ) -> UpsertResult:
        with self._lock:
            self.upsert_calls += 1
            if (class_id, attendance_date) in self.markers:
                return UpsertResult(applied=False, reason=RejectReason.SESSION_CLOSED)

            key = (student_id, class_id, attendance_date)
            existing = self.records.get(key)
            if existing and not allow_update:
                return UpsertResult(applied=False, reason=RejectReason.SESSION_CLOSED)

            now = self._now()
            self.records[key] = AttendanceRecord(
                student_id=student_id,
                class_id=class_id,
                attendance_date=attendance_date,
                status=status,
                explicit_status=explicit_status,
                had_photo=had_photo,
                photo=photo,
                notes=notes,
                marked_by=marked_by,
                topic_id=topic_id,
                created_at=existing.created_at if existing else now,
                updated_at=now,
            )
            return UpsertResult(applied=True)

    def get_for_key(self, student_id: str, class_id: str, attendance_date: date) -> Optional[AttendanceRecord]:
        return self.records.get((student_id, class_id, attendance_date))

    def get_for_class_and_date(self, class_id: str, attendance_date: date):
        items = [
            replace(r, student_name=self.students.get(r.student_id, (None, None))[0])
            for r in self.records.values()
            if r.class_id == class_id and r.attendance_date == attendance_date
        ]
        items.sort(key=lambda r: r.student_name or "")
        return items

    def is_finalized(self, class_id: str, session_date: date) -> bool:
        return (class_id, session_date) in self.markers

    def get_session_marker(self, class_id: str, session_date: date) -> Optional[SessionMarker]:
        return self.markers.get((class_id, session_date))

    def finalize(self, class_id: str, session_date: date, finalized_by: Optional[str]) -> None:
        with self._lock:
            self.markers.setdefault(
                (class_id, session_date),
                SessionMarker(class_id=class_id, session_date=session_date, finalized_by=finalized_by, finalized_at=self._now()),
            )

    def _fan_out_rows(self, *, start_date: date, end_date: date, teacher_id=None, class_id=None):
        # One row per enrollment x matching record, before grouping by student.
        rows: list[StudentAttendanceRow] = []
        for e in self.enrollments:
            if not self._in_scope(e, teacher_id, class_id):
                continue
            class_name, section, _ = self.classes[e.class_id]
            name, roll = self.students[e.student_id]
            base = dict(
                student_id=e.student_id,
                name=name,
                roll_number=roll,
                class_id=e.class_id,
                class_name=class_name,
                section=section,
                enrolled_at=e.enrolled_at,
                enrollment_status=e.status,
            )
            matches = [
                r
                for r in self.records.values()
                if r.student_id == e.student_id and r.class_id == e.class_id and start_date <= r.attendance_date <= end_date
            ]
            if not matches:
                rows.append(StudentAttendanceRow(**base))
            for r in matches:
                rows.append(
                    StudentAttendanceRow(
                        **base,
                        attendance_class_id=r.class_id,
                        attendance_date=r.attendance_date,
                        status=r.status,
                        photo=r.photo,
                        created_at=r.created_at,
                    )
                )
        return rows

    def _in_scope(self, e: Enrollment, teacher_id, class_id) -> bool:
        if teacher_id is not None and self.classes[e.class_id][2] != teacher_id:
            return False
        return class_id is None or e.class_id == class_id

    def get_student_aggregates(self, *, start_date: date, end_date: date, teacher_id=None, class_id=None):
        rows = self._fan_out_rows(start_date=start_date, end_date=end_date, teacher_id=teacher_id, class_id=class_id)
        return reduce_student_rows(rows)

    def count_enrolled_students(self, *, teacher_id=None, class_id=None) -> int:
        return len({e.student_id for e in self.enrollments if e.status == "active" and self._in_scope(e, teacher_id, class_id)})

    def get_daily_present_counts(self, *, start_date: date, end_date: date, teacher_id=None, class_id=None):
        active = {(e.student_id, e.class_id) for e in self.enrollments if e.status == "active" and self._in_scope(e, teacher_id, class_id)}
        present: dict[date, set[str]] = {}
        for r in self.records.values():
            if (r.student_id, r.class_id) not in active or not (start_date <= r.attendance_date <= end_date):
                continue
            if r.status in (AttendanceStatus.PRESENT, AttendanceStatus.LATE):
                present.setdefault(r.attendance_date, set()).add(r.student_id)
        return {day: len(students) for day, students in present.items()}


@pytest.fixture
def fixed_today() -> date:
    return date(2025, 6, 10)


@pytest.fixture
def clock(fixed_today) -> FixedClock:
    return FixedClock(fixed_today)


@pytest.fixture
def roster() -> InMemoryRoster:
    return InMemoryRoster({"C1": {"S1", "S2", "S3"}})


@pytest.fixture
def attendance_repo() -> InMemoryAttendance:
    repo = InMemoryAttendance()
    repo.add_class("C1", "MBBS Year 1", section="A", teacher_id="T1")
    repo.add_class("C2", "MBBS Year 2", section="B", teacher_id="T2")
    repo.add_student("S1", "Aisha Khan", "R-001")
    repo.add_student("S2", "Bilal Ahmed", "R-002")
    repo.add_student("S3", "Chen Li", "R-003")
    return repo


@pytest.fixture
def make_service(attendance_repo, roster, clock):
    def _make(policy: SessionPolicy = SessionPolicy.SAME_DAY) -> AttendanceService:
        return AttendanceService(attendance_repo, roster, clock=clock, policy=policy)

    return _make


@pytest.fixture
def service(make_service) -> AttendanceService:
    return make_service()


@pytest.fixture
def report_service(attendance_repo, clock) -> AttendanceReportService:
    return AttendanceReportService(attendance_repo, clock=clock)
