from __future__ import annotations

from datetime import date, datetime
from typing import ContextManager, Optional, Protocol, Sequence

from ..core.enums import AttendanceStatus
from ..notifications.model import Notification
from ..overrides.model import AuditLogEntry
from .model import AttendanceRecord, SessionEntry, StudentProfile, Subject


class AttendanceUnitOfWork(Protocol):
    """Operations that run inside one store transaction.

    Everything done through a unit of work is committed together when the
    ``AttendanceStore.transaction()`` block exits normally and rolled back
    otherwise.
    """

    def session_exists(self, *, class_id: int, subject_id: int, attendance_date: date) -> bool:
        raise NotImplementedError

    def get_subject(self, subject_id: int) -> Optional[Subject]:
        raise NotImplementedError

    def list_enrolled_student_ids(self, class_id: int) -> Sequence[int]:
        raise NotImplementedError

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
        """Insert one record; raises ``DuplicateSessionError`` on a unique-key collision."""

        raise NotImplementedError

    def get_student(self, student_id: int) -> Optional[StudentProfile]:
        raise NotImplementedError

    def subject_attendance(self, *, student_id: int, subject_id: int) -> tuple[int, int]:
        """Return ``(attended, total)`` for the student in the subject across all history."""

        raise NotImplementedError

    def insert_notification(
        self,
        *,
        student_id: int,
        type: str,
        message: str,
        meta: dict,
        created_at: datetime,
    ) -> int:
        raise NotImplementedError

    def list_absent_records_for_day(self, *, student_id: int, attendance_date: date) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def mark_present(self, *, record_id: int, reason: str) -> bool:
        raise NotImplementedError

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
        raise NotImplementedError


class AttendanceStore(Protocol):
    """Persistence boundary for attendance records, students, subjects and classes."""

    def transaction(self) -> ContextManager[AttendanceUnitOfWork]:
        raise NotImplementedError

    def session_exists(self, *, class_id: int, subject_id: int, attendance_date: date) -> bool:
        raise NotImplementedError

    def list_session_records(self, *, class_id: int, subject_id: int, attendance_date: date) -> Sequence[SessionEntry]:
        raise NotImplementedError

    def get_student(self, student_id: int) -> Optional[StudentProfile]:
        raise NotImplementedError

    def get_teacher_id_for_user(self, user_id: int) -> Optional[int]:
        raise NotImplementedError

    def get_class_teacher_user_id(self, class_id: int) -> Optional[int]:
        raise NotImplementedError

    def list_notifications(self, student_id: int) -> Sequence[Notification]:
        raise NotImplementedError

    def list_audit_logs(self, attendance_record_id: int) -> Sequence[AuditLogEntry]:
        raise NotImplementedError
