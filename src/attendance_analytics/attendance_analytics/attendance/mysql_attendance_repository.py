from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterator, Optional, Sequence

import mysql.connector

from ..core.enums import AttendanceStatus
from ..core.exceptions import DuplicateSessionError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, is_deadlock, is_duplicate_key, load_json
from ..notifications.model import Notification
from ..overrides.model import AuditLogEntry
from .model import AttendanceRecord, SessionEntry, StudentProfile, Subject
from .repository import AttendanceStore, AttendanceUnitOfWork

_RECORD_COLUMNS = (
    "record_id, class_id, subject_id, teacher_id, student_id, attendance_date, status, override_reason"
)

_STUDENT_QUERY = """
    SELECT s.student_id, s.user_id, s.class_id, s.roll_number,
           u.full_name, u.email, c.class_name
    FROM students s
    JOIN users u ON u.user_id = s.user_id
    JOIN classes c ON c.class_id = s.class_id
    WHERE s.student_id=%s
"""


def _to_record(r: dict) -> AttendanceRecord:
    return AttendanceRecord(
        record_id=int(r["record_id"]),
        class_id=int(r["class_id"]),
        subject_id=int(r["subject_id"]),
        teacher_id=int(r["teacher_id"]),
        student_id=int(r["student_id"]),
        attendance_date=r["attendance_date"],
        status=AttendanceStatus(r["status"]),
        override_reason=r.get("override_reason"),
    )


def _to_student(r: dict) -> StudentProfile:
    return StudentProfile(
        student_id=int(r["student_id"]),
        user_id=int(r["user_id"]),
        full_name=r["full_name"],
        email=r.get("email"),
        class_id=int(r["class_id"]),
        class_name=r["class_name"],
        roll_number=str(r.get("roll_number") or ""),
    )


class MySQLAttendanceUnitOfWork(AttendanceUnitOfWork):
    """Unit of work bound to the cursor of one open transaction."""

    def __init__(self, cur):
        self._cur = cur

    def session_exists(self, *, class_id: int, subject_id: int, attendance_date: date) -> bool:
        self._cur.execute(
            """
            SELECT record_id FROM attendance_records
            WHERE class_id=%s AND subject_id=%s AND attendance_date=%s
            LIMIT 1
            """,
            (class_id, subject_id, attendance_date),
        )
        return fetchone(self._cur) is not None

    def get_subject(self, subject_id: int) -> Optional[Subject]:
        self._cur.execute("SELECT subject_id, subject_name FROM subjects WHERE subject_id=%s", (subject_id,))
        r = fetchone(self._cur)
        if not r:
            return None
        return Subject(subject_id=int(r["subject_id"]), subject_name=r["subject_name"])

    def list_enrolled_student_ids(self, class_id: int) -> Sequence[int]:
        self._cur.execute("SELECT student_id FROM students WHERE class_id=%s ORDER BY roll_number", (class_id,))
        return [int(r["student_id"]) for r in fetchall(self._cur)]

    def insert_record(
        self,
        *,
        class_id: int,
        subject_id: int,
        teacher_id: int,
        student_id: int,
        attendance_date: date,
        status: AttendanceStatus,
    ) -> AttendanceRecord:
        try:
            self._cur.execute(
                """
                INSERT INTO attendance_records(class_id, subject_id, teacher_id, student_id, attendance_date, status)
                VALUES(%s,%s,%s,%s,%s,%s)
                """,
                (class_id, subject_id, teacher_id, student_id, attendance_date, status.value),
            )
        except mysql.connector.Error as exc:
            # Two sessions racing on the unique key end in 1062, or 1213 when their rows interleave.
            if is_duplicate_key(exc) or is_deadlock(exc):
                raise DuplicateSessionError() from exc
            raise
        return AttendanceRecord(
            record_id=int(self._cur.lastrowid),
            class_id=class_id,
            subject_id=subject_id,
            teacher_id=teacher_id,
            student_id=student_id,
            attendance_date=attendance_date,
            status=status,
        )

    def get_student(self, student_id: int) -> Optional[StudentProfile]:
        self._cur.execute(_STUDENT_QUERY, (student_id,))
        r = fetchone(self._cur)
        return _to_student(r) if r else None

    def subject_attendance(self, *, student_id: int, subject_id: int) -> tuple[int, int]:
        self._cur.execute(
            """
            SELECT COUNT(*) AS total,
                   COALESCE(SUM(status='present'), 0) AS attended
            FROM attendance_records
            WHERE student_id=%s AND subject_id=%s
            """,
            (student_id, subject_id),
        )
        r = fetchone(self._cur) or {}
        return int(r.get("attended") or 0), int(r.get("total") or 0)

    def insert_notification(
        self,
        *,
        student_id: int,
        type: str,
        message: str,
        meta: dict,
        created_at: datetime,
    ) -> int:
        self._cur.execute(
            """
            INSERT INTO notifications(student_id, type, message, meta, is_read, created_at)
            VALUES(%s,%s,%s,%s,0,%s)
            """,
            (student_id, type, message, json.dumps(meta, default=str), created_at),
        )
        return int(self._cur.lastrowid)

    def list_absent_records_for_day(self, *, student_id: int, attendance_date: date) -> Sequence[AttendanceRecord]:
        self._cur.execute(
            f"""
            SELECT {_RECORD_COLUMNS}
            FROM attendance_records
            WHERE student_id=%s AND attendance_date=%s AND status=%s
            ORDER BY record_id
            FOR UPDATE
            """,
            (student_id, attendance_date, AttendanceStatus.ABSENT.value),
        )
        return [_to_record(r) for r in fetchall(self._cur)]

    def mark_present(self, *, record_id: int, reason: str) -> bool:
        self._cur.execute(
            """
            UPDATE attendance_records
            SET status=%s, override_reason=%s
            WHERE record_id=%s
            """,
            (AttendanceStatus.PRESENT.value, reason, int(record_id)),
        )
        return self._cur.rowcount > 0

    def insert_audit_log(
        self,
        *,
        attendance_record_id: int,
        actor_user_id: int,
        previous_status: AttendanceStatus,
        new_status: AttendanceStatus,
        reason: str,
        created_at: datetime,
    ) -> int:
        self._cur.execute(
            """
            INSERT INTO audit_logs(attendance_record_id, actor_user_id, previous_status, new_status, reason, created_at)
            VALUES(%s,%s,%s,%s,%s,%s)
            """,
            (attendance_record_id, actor_user_id, previous_status.value, new_status.value, reason, created_at),
        )
        return int(self._cur.lastrowid)


class MySQLAttendanceStore(AttendanceStore):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @contextmanager
    def transaction(self) -> Iterator[MySQLAttendanceUnitOfWork]:
        with db_cursor(self._conn_factory) as (_, cur):
            yield MySQLAttendanceUnitOfWork(cur)

    def session_exists(self, *, class_id: int, subject_id: int, attendance_date: date) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT record_id FROM attendance_records
                WHERE class_id=%s AND subject_id=%s AND attendance_date=%s
                LIMIT 1
                """,
                (class_id, subject_id, attendance_date),
            )
            return fetchone(cur) is not None

    def list_session_records(self, *, class_id: int, subject_id: int, attendance_date: date) -> Sequence[SessionEntry]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT ar.record_id, ar.student_id, ar.status, ar.override_reason,
                       u.full_name, s.roll_number
                FROM attendance_records ar
                JOIN students s ON s.student_id = ar.student_id
                JOIN users u ON u.user_id = s.user_id
                WHERE ar.class_id=%s AND ar.subject_id=%s AND ar.attendance_date=%s
                ORDER BY s.roll_number, ar.record_id
                """,
                (class_id, subject_id, attendance_date),
            )
            return [
                SessionEntry(
                    record_id=int(r["record_id"]),
                    student_id=int(r["student_id"]),
                    full_name=r["full_name"],
                    roll_number=str(r.get("roll_number") or ""),
                    status=AttendanceStatus(r["status"]),
                    override_reason=r.get("override_reason"),
                )
                for r in fetchall(cur)
            ]

    def get_student(self, student_id: int) -> Optional[StudentProfile]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_STUDENT_QUERY, (student_id,))
            r = fetchone(cur)
            return _to_student(r) if r else None

    def get_teacher_id_for_user(self, user_id: int) -> Optional[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT teacher_id FROM teachers WHERE user_id=%s", (user_id,))
            r = fetchone(cur)
            return int(r["teacher_id"]) if r else None

    def get_class_teacher_user_id(self, class_id: int) -> Optional[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT class_teacher_user_id FROM classes WHERE class_id=%s", (class_id,))
            r = fetchone(cur)
            if not r or r.get("class_teacher_user_id") is None:
                return None
            return int(r["class_teacher_user_id"])

    def list_notifications(self, student_id: int) -> Sequence[Notification]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT notification_id, student_id, type, message, meta, is_read, created_at
                FROM notifications
                WHERE student_id=%s
                ORDER BY created_at DESC, notification_id DESC
                """,
                (student_id,),
            )
            return [
                Notification(
                    notification_id=int(r["notification_id"]),
                    student_id=int(r["student_id"]),
                    type=r["type"],
                    message=r["message"],
                    meta=load_json(r.get("meta"), {}),
                    read=bool(r["is_read"]),
                    created_at=r["created_at"],
                )
                for r in fetchall(cur)
            ]

    def list_audit_logs(self, attendance_record_id: int) -> Sequence[AuditLogEntry]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT audit_id, attendance_record_id, actor_user_id, previous_status, new_status, reason, created_at
                FROM audit_logs
                WHERE attendance_record_id=%s
                ORDER BY audit_id
                """,
                (attendance_record_id,),
            )
            return [
                AuditLogEntry(
                    audit_id=int(r["audit_id"]),
                    attendance_record_id=int(r["attendance_record_id"]),
                    actor_user_id=int(r["actor_user_id"]),
                    previous_status=AttendanceStatus(r["previous_status"]),
                    new_status=AttendanceStatus(r["new_status"]),
                    reason=r["reason"],
                    created_at=r["created_at"],
                )
                for r in fetchall(cur)
            ]
