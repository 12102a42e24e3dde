from __future__ import annotations

from datetime import date

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall
from .repository import RosterRepository


class MySQLRosterRepository(RosterRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_roster(self, class_id: str, on_date: date) -> set[str]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT DISTINCT student_id
                FROM student_enrollments
                WHERE class_id=%s AND status='active' AND DATE(enrolled_at) <= %s
                """,
                (class_id, on_date),
            )
            return {str(r["student_id"]) for r in fetchall(cur)}
