from __future__ import annotations

from dataclasses import dataclass

from .attendance.factory import StatusStrategyFactory
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.mysql_roster_repository import MySQLRosterRepository
from .attendance.repository import AttendanceRepository, RosterRepository
from .attendance.service import AttendanceService
from .common.clock import Clock, SystemClock
from .core.constants import DEFAULT_ATTENTION_THRESHOLD, DEFAULT_LOOKBACK_DAYS
from .core.enums import SessionPolicy
from .database.connection import DBConfig, DatabaseConnection
from .reports.service import AttendanceReportService


@dataclass(frozen=True)
class Container:
    attendance_repo: AttendanceRepository
    roster_repo: RosterRepository
    clock: Clock

    attendance_service: AttendanceService
    report_service: AttendanceReportService


def wire_container(
    *,
    attendance_repo: AttendanceRepository,
    roster_repo: RosterRepository,
    clock: Clock | None = None,
    policy: SessionPolicy | str = SessionPolicy.SAME_DAY,
    lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    attention_threshold: float = DEFAULT_ATTENTION_THRESHOLD,
) -> Container:
    clock = clock or SystemClock()

    attendance_service = AttendanceService(
        attendance_repo,
        roster_repo,
        clock=clock,
        policy=SessionPolicy(policy),
        strategy_factory=StatusStrategyFactory(),
    )
    report_service = AttendanceReportService(
        attendance_repo,
        clock=clock,
        lookback_days=lookback_days,
        attention_threshold=attention_threshold,
    )

    return Container(
        attendance_repo=attendance_repo,
        roster_repo=roster_repo,
        clock=clock,
        attendance_service=attendance_service,
        report_service=report_service,
    )


def build_container(*, db_config: dict, **options) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))
    return wire_container(
        attendance_repo=MySQLAttendanceRepository(conn),
        roster_repo=MySQLRosterRepository(conn),
        **options,
    )
