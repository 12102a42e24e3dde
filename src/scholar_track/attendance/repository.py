from __future__ import annotations

from datetime import date
from typing import Mapping, Optional, Protocol, Sequence

from ..core.enums import AttendanceStatus
from .model import AttendanceRecord, SessionMarker, StudentAttendanceAggregate, UpsertResult


class RosterRepository(Protocol):
    def get_roster(self, class_id: str, on_date: date) -> set[str]:
        """Students actively enrolled in the class as of the date."""

        raise NotImplementedError


class AttendanceRepository(Protocol):
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
        """Insert, or overwrite when allow_update, the record for the key.

        Must reject (SESSION_CLOSED) when the session carries a finalize
        marker, and when the record exists but allow_update is False.
        Raises ConflictError on an unresolved write race.
        """

        raise NotImplementedError

    def get_for_key(self, student_id: str, class_id: str, attendance_date: date) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def get_for_class_and_date(self, class_id: str, attendance_date: date) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def is_finalized(self, class_id: str, session_date: date) -> bool:
        raise NotImplementedError

    def get_session_marker(self, class_id: str, session_date: date) -> Optional[SessionMarker]:
        raise NotImplementedError

    def finalize(self, class_id: str, session_date: date, finalized_by: Optional[str]) -> None:
        """Write the finalize marker. Idempotent: an existing marker is kept."""

        raise NotImplementedError

    def get_student_aggregates(
        self,
        *,
        start_date: date,
        end_date: date,
        teacher_id: Optional[str] = None,
        class_id: Optional[str] = None,
    ) -> Sequence[StudentAttendanceAggregate]:
        """Exactly one row per distinct student enrolled in scope.

        Counts cover records in [start_date, end_date] for the student's
        scoped classes, each (class, date) once. The label comes from the
        active enrollment when there is one, otherwise the most recent.
        """

        raise NotImplementedError

    def count_enrolled_students(self, *, teacher_id: Optional[str] = None, class_id: Optional[str] = None) -> int:
        """Distinct students with an active enrollment in scope."""

        raise NotImplementedError

    def get_daily_present_counts(
        self,
        *,
        start_date: date,
        end_date: date,
        teacher_id: Optional[str] = None,
        class_id: Optional[str] = None,
    ) -> Mapping[date, int]:
        """Per date, distinct actively enrolled students marked present or late."""

        raise NotImplementedError
