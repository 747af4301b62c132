from __future__ import annotations

from dataclasses import dataclass

from .analytics.engine import AnalyticsEngine
from .analytics.mysql_analytics_repository import MySQLAnalyticsRepository
from .analytics.service import AnalyticsReportService
from .attendance.mysql_attendance_repository import MySQLAttendanceStore
from .attendance.service import AttendanceMarkingService
from .database.connection import DBConfig, DatabaseConnection
from .notifications.dispatcher import NotificationDispatcher
from .notifications.factory import EmailTransportFactory
from .overrides.service import OverrideService


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection

    attendance_store: MySQLAttendanceStore
    analytics_repo: MySQLAnalyticsRepository

    dispatcher: NotificationDispatcher
    analytics_engine: AnalyticsEngine
    analytics_report_service: AnalyticsReportService
    marking_service: AttendanceMarkingService
    override_service: OverrideService


def build_container(*, db_config: dict, email_config: dict) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_mapping(db_config))

    attendance_store = MySQLAttendanceStore(conn)
    analytics_repo = MySQLAnalyticsRepository(conn)

    dispatcher = NotificationDispatcher(EmailTransportFactory().for_config(email_config))
    analytics_engine = AnalyticsEngine(analytics_repo)
    analytics_report_service = AnalyticsReportService(analytics_repo)
    marking_service = AttendanceMarkingService(attendance_store, dispatcher, analytics_engine)
    override_service = OverrideService(attendance_store, analytics_engine)

    return Container(
        conn=conn,
        attendance_store=attendance_store,
        analytics_repo=analytics_repo,
        dispatcher=dispatcher,
        analytics_engine=analytics_engine,
        analytics_report_service=analytics_report_service,
        marking_service=marking_service,
        override_service=override_service,
    )
