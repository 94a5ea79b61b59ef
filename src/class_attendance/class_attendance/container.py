from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .core.constants import DEFAULT_LATE_MINUTES_ALLOWED, RECOMPUTE_RETRY_BACKOFF_SECONDS
from .classes.mysql_class_repository import MySQLClassRepository
from .classes.repository import ClassRepository
from .classes.service import ClassService
from .database.connection import DBConfig, DatabaseConnection
from .excuses.mysql_excuse_repository import MySQLExcuseRepository
from .excuses.repository import ExcuseRepository
from .excuses.service import ExcuseService
from .reports.mysql_report_repository import MySQLReportRepository
from .reports.repository import ReportRepository
from .reports.service import AttendanceReportService
from .roster.mysql_roster_repository import MySQLRosterRepository
from .roster.repository import RosterRepository
from .roster.service import RosterService
from .sessions.factory import CheckInStrategyFactory
from .sessions.mysql_record_repository import MySQLRecordRepository
from .sessions.mysql_session_repository import MySQLSessionRepository
from .sessions.repository import RecordRepository, SessionRepository
from .sessions.service import AttendanceSessionLedger
from .users.mysql_user_repository import MySQLUserRepository
from .users.repository import UserRepository
from .users.service import UserService


@dataclass(frozen=True)
class Container:
    sessions_repo: SessionRepository
    records_repo: RecordRepository
    roster_repo: RosterRepository
    excuses_repo: ExcuseRepository
    reports_repo: ReportRepository
    classes_repo: ClassRepository
    users_repo: UserRepository

    ledger: AttendanceSessionLedger
    roster_service: RosterService
    class_service: ClassService
    user_service: UserService
    excuse_service: ExcuseService
    report_service: AttendanceReportService

    conn: Optional[DatabaseConnection] = None


def wire(
    *,
    sessions_repo: SessionRepository,
    records_repo: RecordRepository,
    roster_repo: RosterRepository,
    excuses_repo: ExcuseRepository,
    reports_repo: ReportRepository,
    classes_repo: ClassRepository,
    users_repo: UserRepository,
    conn: Optional[DatabaseConnection] = None,
    default_late_minutes: int = DEFAULT_LATE_MINUTES_ALLOWED,
    retry_backoff_seconds: float = RECOMPUTE_RETRY_BACKOFF_SECONDS,
) -> Container:
    """Build services on top of any repository implementations."""

    ledger = AttendanceSessionLedger(
        sessions_repo,
        records_repo,
        roster_repo,
        strategy_factory=CheckInStrategyFactory(),
        default_late_minutes=default_late_minutes,
        retry_backoff_seconds=retry_backoff_seconds,
    )

    return Container(
        sessions_repo=sessions_repo,
        records_repo=records_repo,
        roster_repo=roster_repo,
        excuses_repo=excuses_repo,
        reports_repo=reports_repo,
        classes_repo=classes_repo,
        users_repo=users_repo,
        ledger=ledger,
        roster_service=RosterService(roster_repo, classes_repo),
        class_service=ClassService(classes_repo, users_repo),
        user_service=UserService(users_repo),
        excuse_service=ExcuseService(excuses_repo, ledger, roster_repo),
        report_service=AttendanceReportService(reports_repo),
        conn=conn,
    )


def build_container(
    *,
    db_config: dict,
    default_late_minutes: int = DEFAULT_LATE_MINUTES_ALLOWED,
    retry_backoff_seconds: float = RECOMPUTE_RETRY_BACKOFF_SECONDS,
) -> Container:
    config = DBConfig(
        host=str(db_config["host"]),
        port=int(db_config.get("port", 3306)),
        user=str(db_config["user"]),
        password=str(db_config["password"]),
        database=str(db_config["database"]),
    )
    conn = DatabaseConnection.get_instance(config)

    return wire(
        sessions_repo=MySQLSessionRepository(conn),
        records_repo=MySQLRecordRepository(conn),
        roster_repo=MySQLRosterRepository(conn),
        excuses_repo=MySQLExcuseRepository(conn),
        reports_repo=MySQLReportRepository(conn),
        classes_repo=MySQLClassRepository(conn),
        users_repo=MySQLUserRepository(conn),
        conn=conn,
        default_late_minutes=default_late_minutes,
        retry_backoff_seconds=retry_backoff_seconds,
    )
