from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

from mysql.connector import errorcode
from mysql.connector.errors import IntegrityError

from ..core.enums import AttendanceStatus, RejectReason
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import AttendanceRecord, SessionMarker, StudentAttendanceAggregate, UpsertResult
from .repository import AttendanceRepository

_RECORD_COLUMNS = """
    a.student_id, a.class_id, a.attendance_date, a.status, a.explicit_status, a.had_photo,
    a.photo, a.notes, a.marked_by, a.topic_id, a.created_at, a.updated_at, s.name AS student_name
"""


def _scope(teacher_id: Optional[str], class_id: Optional[str]) -> tuple[str, list[object]]:
    clauses: list[str] = []
    params: list[object] = []

    if teacher_id is not None:
        clauses.append("c.teacher_id=%s")
        params.append(teacher_id)
    if class_id is not None:
        clauses.append("c.id=%s")
        params.append(class_id)

    return " AND ".join(clauses) or "1=1", params


def _to_record(r: dict) -> AttendanceRecord:
    return AttendanceRecord(
        student_id=str(r["student_id"]),
        class_id=str(r["class_id"]),
        attendance_date=r["attendance_date"],
        status=AttendanceStatus(r["status"]),
        explicit_status=AttendanceStatus(r["explicit_status"]) if r.get("explicit_status") else None,
        had_photo=bool(r.get("had_photo")),
        photo=r.get("photo"),
        notes=r.get("notes"),
        marked_by=r.get("marked_by"),
        topic_id=r.get("topic_id"),
        created_at=r.get("created_at"),
        updated_at=r.get("updated_at"),
        student_name=r.get("student_name"),
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

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
        params = (
            student_id,
            class_id,
            attendance_date,
            status.value,
            explicit_status.value if explicit_status else None,
            int(bool(had_photo)),
            photo,
            notes,
            marked_by,
            topic_id,
        )
        insert_sql = """
            INSERT INTO attendance(
                student_id, class_id, attendance_date, status, explicit_status,
                had_photo, photo, notes, marked_by, topic_id
            )
            VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
        """

        with db_cursor(self._conn_factory) as (_, cur):
            # Shared lock on the marker so a concurrent finalize waits for this write.
            cur.execute(
                """
                SELECT class_id FROM attendance_sessions
                WHERE class_id=%s AND session_date=%s
                LOCK IN SHARE MODE
                """,
                (class_id, attendance_date),
            )
            if fetchone(cur):
                return UpsertResult(applied=False, reason=RejectReason.SESSION_CLOSED)

            if not allow_update:
                try:
                    cur.execute(insert_sql, params)
                except IntegrityError as e:
                    if e.errno == errorcode.ER_DUP_ENTRY:
                        return UpsertResult(applied=False, reason=RejectReason.SESSION_CLOSED)
                    raise
                return UpsertResult(applied=True)

            cur.execute(
                insert_sql
                + """
                ON DUPLICATE KEY UPDATE
                    status=VALUES(status),
                    explicit_status=VALUES(explicit_status),
                    had_photo=VALUES(had_photo),
                    photo=VALUES(photo),
                    notes=VALUES(notes),
                    marked_by=VALUES(marked_by),
                    topic_id=VALUES(topic_id),
                    updated_at=CURRENT_TIMESTAMP(6)
                """,
                params,
            )
            return UpsertResult(applied=True)

    def get_for_key(self, student_id: str, class_id: str, attendance_date: date) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_RECORD_COLUMNS}
                FROM attendance a
                JOIN students s ON s.id = a.student_id
                WHERE a.student_id=%s AND a.class_id=%s AND a.attendance_date=%s
                """,
                (student_id, class_id, attendance_date),
            )
            r = fetchone(cur)
            return _to_record(r) if r else None

    def get_for_class_and_date(self, class_id: str, attendance_date: date) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_RECORD_COLUMNS}
                FROM attendance a
                JOIN students s ON s.id = a.student_id
                WHERE a.class_id=%s AND a.attendance_date=%s
                ORDER BY s.name ASC
                """,
                (class_id, attendance_date),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def is_finalized(self, class_id: str, session_date: date) -> bool:
        return self.get_session_marker(class_id, session_date) is not None

    def get_session_marker(self, class_id: str, session_date: date) -> Optional[SessionMarker]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT class_id, session_date, finalized_by, finalized_at
                FROM attendance_sessions
                WHERE class_id=%s AND session_date=%s
                """,
                (class_id, session_date),
            )
            r = fetchone(cur)
            if not r:
                return None
            return SessionMarker(
                class_id=str(r["class_id"]),
                session_date=r["session_date"],
                finalized_by=r.get("finalized_by"),
                finalized_at=r.get("finalized_at"),
            )

    def finalize(self, class_id: str, session_date: date, finalized_by: Optional[str]) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT IGNORE INTO attendance_sessions(class_id, session_date, finalized_by)
                VALUES(%s,%s,%s)
                """,
                (class_id, session_date, finalized_by),
            )

    def get_student_aggregates(
        self,
        *,
        start_date: date,
        end_date: date,
        teacher_id: Optional[str] = None,
        class_id: Optional[str] = None,
    ) -> Sequence[StudentAttendanceAggregate]:
        where, scope_params = _scope(teacher_id, class_id)
        params = [*scope_params, *scope_params, start_date, end_date]

        with db_cursor(self._conn_factory) as (_, cur):
            # Grouped per student in SQL: repeated enrollments never multiply rows or counts.
            cur.execute(
                f"""
                WITH scoped AS (
                    SELECT DISTINCT e.student_id, e.class_id
                    FROM student_enrollments e
                    JOIN classes c ON c.id = e.class_id
                    WHERE {where}
                ),
                labels AS (
                    SELECT
                        e.student_id, c.name AS class_name, c.section,
                        e.enrolled_at, e.status AS enrollment_status,
                        ROW_NUMBER() OVER (
                            PARTITION BY e.student_id
                            ORDER BY (e.status = 'active') DESC, e.enrolled_at DESC
                        ) AS rn
                    FROM student_enrollments e
                    JOIN classes c ON c.id = e.class_id
                    WHERE {where}
                ),
                marks AS (
                    SELECT a.student_id, a.status, a.photo, a.attendance_date, a.created_at
                    FROM attendance a
                    JOIN scoped sc ON sc.student_id = a.student_id AND sc.class_id = a.class_id
                    WHERE a.attendance_date BETWEEN %s AND %s
                ),
                counts AS (
                    SELECT
                        student_id,
                        SUM(status = 'present') AS present_count,
                        SUM(status = 'late') AS late_count,
                        SUM(status = 'absent') AS absent_count,
                        SUM(status = 'excused') AS excused_count,
                        COUNT(*) AS total_sessions
                    FROM marks
                    GROUP BY student_id
                ),
                photos AS (
                    SELECT
                        student_id, photo,
                        ROW_NUMBER() OVER (
                            PARTITION BY student_id
                            ORDER BY attendance_date DESC, created_at DESC
                        ) AS rn
                    FROM marks
                    WHERE photo IS NOT NULL AND TRIM(photo) <> ''
                )
                SELECT
                    s.id AS student_id, s.name, s.roll_number,
                    l.class_name, l.section, l.enrolled_at, l.enrollment_status,
                    k.present_count, k.late_count, k.absent_count, k.excused_count, k.total_sessions,
                    p.photo AS latest_photo
                FROM labels l
                JOIN students s ON s.id = l.student_id
                LEFT JOIN counts k ON k.student_id = l.student_id
                LEFT JOIN photos p ON p.student_id = l.student_id AND p.rn = 1
                WHERE l.rn = 1
                ORDER BY s.name ASC, s.id ASC
                """,
                tuple(params),
            )
            return [
                StudentAttendanceAggregate(
                    student_id=str(r["student_id"]),
                    name=r["name"],
                    roll_number=r["roll_number"],
                    class_name=r["class_name"],
                    section=r.get("section"),
                    enrolled_at=r.get("enrolled_at"),
                    enrollment_status=r.get("enrollment_status") or "active",
                    present_count=int(r.get("present_count") or 0),
                    late_count=int(r.get("late_count") or 0),
                    absent_count=int(r.get("absent_count") or 0),
                    excused_count=int(r.get("excused_count") or 0),
                    total_sessions=int(r.get("total_sessions") or 0),
                    latest_photo=r.get("latest_photo"),
                )
                for r in fetchall(cur)
            ]

    def count_enrolled_students(self, *, teacher_id: Optional[str] = None, class_id: Optional[str] = None) -> int:
        where, params = _scope(teacher_id, class_id)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT COUNT(DISTINCT e.student_id) AS total
                FROM student_enrollments e
                JOIN classes c ON c.id = e.class_id
                WHERE e.status = 'active' AND {where}
                """,
                tuple(params),
            )
            r = fetchone(cur)
            return int(r["total"]) if r else 0

    def get_daily_present_counts(
        self,
        *,
        start_date: date,
        end_date: date,
        teacher_id: Optional[str] = None,
        class_id: Optional[str] = None,
    ) -> dict[date, int]:
        where, scope_params = _scope(teacher_id, class_id)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT a.attendance_date, COUNT(DISTINCT a.student_id) AS present_students
                FROM attendance a
                JOIN student_enrollments e
                    ON e.student_id = a.student_id AND e.class_id = a.class_id AND e.status = 'active'
                JOIN classes c ON c.id = a.class_id
                WHERE a.attendance_date BETWEEN %s AND %s
                    AND a.status IN ('present', 'late')
                    AND {where}
                GROUP BY a.attendance_date
                """,
                (start_date, end_date, *scope_params),
            )
            return {r["attendance_date"]: int(r["present_students"]) for r in fetchall(cur)}
