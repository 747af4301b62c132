from __future__ import annotations

import json
from typing import Optional, Sequence

from ..core.enums import AttendanceStatus, RiskLevel
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, load_json
from .model import AnalyticsCache, HistoryEntry, StudentRiskRow, SubjectBreakdown
from .repository import AnalyticsRepository


class MySQLAnalyticsRepository(AnalyticsRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_history(self, student_id: int) -> Sequence[HistoryEntry]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT ar.record_id, ar.subject_id, s.subject_name, ar.attendance_date, ar.status
                FROM attendance_records ar
                JOIN subjects s ON s.subject_id = ar.subject_id
                WHERE ar.student_id=%s
                ORDER BY ar.attendance_date ASC, ar.record_id ASC
                """,
                (student_id,),
            )
            return [
                HistoryEntry(
                    record_id=int(r["record_id"]),
                    subject_id=int(r["subject_id"]),
                    subject_name=r["subject_name"],
                    attendance_date=r["attendance_date"],
                    status=AttendanceStatus(r["status"]),
                )
                for r in fetchall(cur)
            ]

    def upsert(self, cache: AnalyticsCache) -> None:
        subject_wise = json.dumps([s.to_dict() for s in cache.subject_wise])
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO analytics_cache(
                    student_id, overall_pct, subject_wise, rate_of_decline, acceleration,
                    variance, weekly_avg, term_avg, risk_level, last_computed_at
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    overall_pct=VALUES(overall_pct),
                    subject_wise=VALUES(subject_wise),
                    rate_of_decline=VALUES(rate_of_decline),
                    acceleration=VALUES(acceleration),
                    variance=VALUES(variance),
                    weekly_avg=VALUES(weekly_avg),
                    term_avg=VALUES(term_avg),
                    risk_level=VALUES(risk_level),
                    last_computed_at=VALUES(last_computed_at)
                """,
                (
                    cache.student_id,
                    cache.overall_pct,
                    subject_wise,
                    cache.rate_of_decline,
                    cache.acceleration,
                    cache.variance,
                    cache.weekly_avg,
                    cache.term_avg,
                    cache.risk_level.value,
                    cache.last_computed_at.replace(tzinfo=None),
                ),
            )

    def get(self, student_id: int) -> Optional[AnalyticsCache]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT student_id, overall_pct, subject_wise, rate_of_decline, acceleration,
                       variance, weekly_avg, term_avg, risk_level, last_computed_at
                FROM analytics_cache
                WHERE student_id=%s
                """,
                (student_id,),
            )
            r = fetchone(cur)
            if not r:
                return None
            return AnalyticsCache(
                student_id=int(r["student_id"]),
                overall_pct=float(r["overall_pct"]),
                subject_wise=tuple(
                    SubjectBreakdown(
                        subject_id=int(s["subject_id"]),
                        subject_name=s["subject_name"],
                        attended=int(s["attended"]),
                        total=int(s["total"]),
                        pct=float(s["pct"]),
                    )
                    for s in load_json(r["subject_wise"], [])
                ),
                rate_of_decline=float(r["rate_of_decline"]),
                acceleration=float(r["acceleration"]),
                variance=float(r["variance"]),
                weekly_avg=float(r["weekly_avg"]),
                term_avg=float(r["term_avg"]),
                risk_level=RiskLevel(r["risk_level"]),
                last_computed_at=r["last_computed_at"],
            )

    def list_student_ids(self) -> Sequence[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT student_id FROM students ORDER BY student_id")
            return [int(r["student_id"]) for r in fetchall(cur)]

    def list_risk_rows(self, *, class_id: Optional[int] = None) -> Sequence[StudentRiskRow]:
        where = ""
        params: tuple = ()
        if class_id is not None:
            where = "WHERE s.class_id=%s"
            params = (int(class_id),)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT s.student_id, s.class_id, s.roll_number, u.full_name,
                       ac.overall_pct, ac.risk_level
                FROM students s
                JOIN users u ON u.user_id = s.user_id
                LEFT JOIN analytics_cache ac ON ac.student_id = s.student_id
                {where}
                ORDER BY s.class_id, s.roll_number
                """,
                params,
            )
            return [
                StudentRiskRow(
                    student_id=int(r["student_id"]),
                    full_name=r["full_name"],
                    roll_number=str(r.get("roll_number") or ""),
                    class_id=int(r["class_id"]),
                    overall_pct=float(r["overall_pct"]) if r.get("overall_pct") is not None else None,
                    risk_level=RiskLevel(r["risk_level"]) if r.get("risk_level") else None,
                )
                for r in fetchall(cur)
            ]
