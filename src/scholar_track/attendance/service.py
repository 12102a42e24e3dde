from __future__ import annotations

import logging
from datetime import date
from typing import Any, Iterable, Optional, Sequence

from ..common.clock import Clock, SystemClock
from ..common.datetime_utils import coerce_date
from ..common.validators import optional_text, require_non_empty
from ..core.constants import CONFLICT_RETRIES
from ..core.enums import AttendanceStatus, RejectReason, SessionPolicy, WriteOutcome
from ..core.exceptions import ConflictError, SessionClosedError, ValidationError
from .factory import StatusStrategyFactory, derive_status
from .model import AttendanceRecord, BatchResult, CaptureEvent, SessionState, StudentResult
from .repository import AttendanceRepository, RosterRepository
from .session import accepts_new_records, is_session_open

logger = logging.getLogger(__name__)


def parse_status(value: Any) -> Optional[AttendanceStatus]:
    text = optional_text(value)
    if text is None:
        return None
    try:
        return AttendanceStatus(text.lower())
    except ValueError:
        allowed = ", ".join(s.value for s in AttendanceStatus)
        raise ValidationError(f"Unknown attendance status {text!r} (expected one of: {allowed})")


def build_capture_event(item: Any, prefix: str = "") -> CaptureEvent:
    """One capture event from a JSON object.

    Accepts both camelCase (studentId) and snake_case (student_id) keys.
    `prefix` locates the object in error messages, e.g. "attendance[2].".
    """

    if not isinstance(item, dict):
        raise ValidationError(f"{prefix.rstrip('.') or 'body'} must be an object")
    student_id = item.get("studentId", item.get("student_id"))
    return CaptureEvent(
        student_id=require_non_empty(student_id, f"{prefix}studentId"),
        photo=optional_text(item.get("photo")),
        notes=optional_text(item.get("notes")),
        status=parse_status(item.get("status")),
    )


def build_capture_events(items: Any) -> list[CaptureEvent]:
    """Turn a JSON attendance list into capture events."""

    if not isinstance(items, list):
        raise ValidationError("attendance must be a list")
    return [build_capture_event(item, f"attendance[{index}].") for index, item in enumerate(items)]


class AttendanceService:
    """Photo attendance sessions: batch submission, same-day edits, finalize."""

    def __init__(
        self,
        attendance: AttendanceRepository,
        roster: RosterRepository,
        *,
        clock: Clock | None = None,
        policy: SessionPolicy = SessionPolicy.SAME_DAY,
        strategy_factory: StatusStrategyFactory | None = None,
    ):
        self._attendance = attendance
        self._roster = roster
        self._clock = clock or SystemClock()
        self._policy = SessionPolicy(policy)
        self._factory = strategy_factory or StatusStrategyFactory()

    @property
    def policy(self) -> SessionPolicy:
        return self._policy

    def submit_batch(
        self,
        *,
        class_id: str,
        attendance_date: date | str,
        events: Sequence[CaptureEvent],
        marked_by: Optional[str],
        topic_id: Optional[str] = None,
    ) -> BatchResult:
        class_id = require_non_empty(class_id, "classId")
        day = coerce_date(attendance_date, "date")
        if not events:
            raise ValidationError("No attendance records to submit")

        self._validate_membership(class_id, day, events)

        session_open, accepts_new = self._write_window(class_id, day)

        results: list[StudentResult] = []
        for event in events:
            decision = derive_status(event, factory=self._factory)
            try:
                if not accepts_new:
                    raise SessionClosedError(f"Attendance for class {class_id} on {day} is closed")
                self._write(
                    event=event,
                    class_id=class_id,
                    day=day,
                    status=decision.status,
                    explicit=decision.explicit,
                    marked_by=marked_by,
                    topic_id=topic_id,
                    allow_update=session_open,
                )
            except SessionClosedError:
                logger.warning("Rejected attendance for student %s in class %s on %s: session closed", event.student_id, class_id, day)
                results.append(
                    StudentResult(
                        student_id=event.student_id,
                        outcome=WriteOutcome.REJECTED,
                        status=decision.status,
                        reason=RejectReason.SESSION_CLOSED,
                    )
                )
                continue

            results.append(StudentResult(student_id=event.student_id, outcome=WriteOutcome.APPLIED, status=decision.status))

        batch = BatchResult(class_id=class_id, attendance_date=day, results=results)
        logger.info(
            "Attendance batch for class %s on %s by %s: %d applied, %d rejected",
            class_id, day, marked_by, batch.applied_count, batch.rejected_count,
        )
        return batch

    def mark_student(
        self,
        *,
        class_id: str,
        attendance_date: date | str,
        event: CaptureEvent,
        marked_by: Optional[str],
        topic_id: Optional[str] = None,
    ) -> AttendanceRecord:
        """Record a single student's attendance.

        Unlike a batch, a closed session raises SessionClosedError.
        """

        class_id = require_non_empty(class_id, "classId")
        day = coerce_date(attendance_date, "date")
        self._validate_membership(class_id, day, [event])

        session_open, accepts_new = self._write_window(class_id, day)
        if not accepts_new:
            raise SessionClosedError(f"Attendance for class {class_id} on {day} is closed")
        decision = derive_status(event, factory=self._factory)
        self._write(
            event=event,
            class_id=class_id,
            day=day,
            status=decision.status,
            explicit=decision.explicit,
            marked_by=marked_by,
            topic_id=topic_id,
            allow_update=session_open,
        )
        record = self._attendance.get_for_key(event.student_id, class_id, day)
        if record is None:
            raise RuntimeError(f"Attendance for student {event.student_id} was not persisted")
        return record

    def finalize_session(self, *, class_id: str, session_date: date | str, finalized_by: Optional[str]) -> SessionState:
        class_id = require_non_empty(class_id, "classId")
        day = coerce_date(session_date, "date")

        if self._attendance.is_finalized(class_id, day):
            logger.info("Attendance for class %s on %s already finalized", class_id, day)
        else:
            self._attendance.finalize(class_id, day, finalized_by)
            logger.info("Finalized attendance for class %s on %s by %s", class_id, day, finalized_by)
        return self.get_session(class_id=class_id, session_date=day)

    def get_session(self, *, class_id: str, session_date: date | str) -> SessionState:
        """Session state plus the records saved so far, for continued editing."""

        class_id = require_non_empty(class_id, "classId")
        day = coerce_date(session_date, "date")

        marker = self._attendance.get_session_marker(class_id, day)
        is_open = is_session_open(
            today=self._clock.today(), session_date=day, finalized=marker is not None, policy=self._policy
        )
        # A past date under the same-day policies is finalized without a marker.
        return SessionState(
            class_id=class_id,
            session_date=day,
            is_open=is_open,
            is_finalized=not is_open,
            finalized_by=marker.finalized_by if marker else None,
            finalized_at=marker.finalized_at if marker else None,
            records=list(self._attendance.get_for_class_and_date(class_id, day)),
        )

    def _write_window(self, class_id: str, day: date) -> tuple[bool, bool]:
        """(overwrites allowed, first-time inserts allowed) for the session."""

        finalized = self._attendance.is_finalized(class_id, day)
        today = self._clock.today()
        return (
            is_session_open(today=today, session_date=day, finalized=finalized, policy=self._policy),
            accepts_new_records(today=today, session_date=day, finalized=finalized, policy=self._policy),
        )

    def _validate_membership(self, class_id: str, day: date, events: Iterable[CaptureEvent]) -> None:
        seen: set[str] = set()
        duplicates: list[str] = []
        for event in events:
            if event.student_id in seen:
                duplicates.append(event.student_id)
            seen.add(event.student_id)
        if duplicates:
            raise ValidationError(f"Students submitted more than once: {', '.join(sorted(set(duplicates)))}")

        roster = self._roster.get_roster(class_id, day)
        outsiders = sorted(seen - set(roster))
        if outsiders:
            raise ValidationError(f"Students not enrolled in class {class_id}: {', '.join(outsiders)}")

    def _write(
        self,
        *,
        event: CaptureEvent,
        class_id: str,
        day: date,
        status: AttendanceStatus,
        explicit: bool,
        marked_by: Optional[str],
        topic_id: Optional[str],
        allow_update: bool,
    ) -> None:
        attempts = 0
        while True:
            try:
                result = self._attendance.upsert(
                    student_id=event.student_id,
                    class_id=class_id,
                    attendance_date=day,
                    status=status,
                    explicit_status=status if explicit else None,
                    had_photo=event.has_photo,
                    photo=event.photo,
                    notes=event.notes,
                    marked_by=marked_by,
                    topic_id=topic_id,
                    allow_update=allow_update,
                )
                break
            except ConflictError:
                if attempts >= CONFLICT_RETRIES:
                    raise
                attempts += 1
                logger.warning("Write conflict for student %s in class %s on %s, retrying", event.student_id, class_id, day)

        if not result.applied:
            raise SessionClosedError(f"Attendance for class {class_id} on {day} is no longer editable")


def record_to_dict(r: AttendanceRecord) -> dict:
    return {
        "student_id": r.student_id,
        "student_name": r.student_name,
        "class_id": r.class_id,
        "date": r.attendance_date.strftime("%Y-%m-%d"),
        "status": r.status.value,
        "explicit_status": r.explicit_status.value if r.explicit_status else None,
        "had_photo": r.had_photo,
        "photo": r.photo,
        "notes": r.notes,
        "marked_by": r.marked_by,
        "topic_id": r.topic_id,
        "created_at": r.created_at.isoformat() if r.created_at else None,
        "updated_at": r.updated_at.isoformat() if r.updated_at else None,
    }


def session_to_dict(s: SessionState) -> dict:
    return {
        "class_id": s.class_id,
        "date": s.session_date.strftime("%Y-%m-%d"),
        "is_open": s.is_open,
        "is_finalized": s.is_finalized,
        "finalized_by": s.finalized_by,
        "finalized_at": s.finalized_at.isoformat() if s.finalized_at else None,
        "records": [record_to_dict(r) for r in s.records],
    }


def batch_to_dict(b: BatchResult) -> dict:
    return {
        "class_id": b.class_id,
        "date": b.attendance_date.strftime("%Y-%m-%d"),
        "applied": b.applied_count,
        "rejected": b.rejected_count,
        "results": [
            {
                "student_id": r.student_id,
                "outcome": r.outcome.value,
                "status": r.status.value,
                "reason": r.reason.value if r.reason else None,
            }
            for r in b.results
        ],
    }
