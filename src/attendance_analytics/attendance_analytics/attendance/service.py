from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable, Mapping, Optional, Sequence

from ..analytics.engine import AnalyticsEngine
from ..common.datetime_utils import format_iso_date, now_utc
from ..core.enums import AttendanceStatus, NotificationType
from ..core.exceptions import DuplicateSessionError, EmailDeliveryError, NotFoundError, ValidationError
from ..core.risk import classify_risk
from ..notifications.dispatcher import NotificationDispatcher
from ..notifications.model import DispatchSummary
from ..notifications.templates import AbsenceTemplates
from .model import AbsenceAlert, AttendanceRecord, SessionEntry, StudentProfile, Subject
from .repository import AttendanceStore, AttendanceUnitOfWork

logger = logging.getLogger(__name__)

RecipientResolver = Callable[[StudentProfile], Optional[str]]


def stored_email(student: StudentProfile) -> Optional[str]:
    """Default recipient lookup: the address on the student's user account."""

    return student.email or None


class AttendanceMarkingService:
    """Use case: record one class/subject/date session in full or not at all.

    Work is split in two phases: ``prepare_side_effects`` runs inside the
    transaction (notification rows, email payloads) and ``dispatch`` runs after
    commit (emails, best-effort).
    """

    def __init__(
        self,
        store: AttendanceStore,
        dispatcher: NotificationDispatcher,
        analytics: Optional[AnalyticsEngine] = None,
        *,
        recipient_resolver: RecipientResolver = stored_email,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._store = store
        self._dispatcher = dispatcher
        self._analytics = analytics
        self._resolve_recipient = recipient_resolver
        self._clock = clock

    def has_session(self, *, class_id: int, subject_id: int, attendance_date: date) -> bool:
        return self._store.session_exists(class_id=int(class_id), subject_id=int(subject_id), attendance_date=attendance_date)

    def list_session(self, *, class_id: int, subject_id: int, attendance_date: date) -> list[SessionEntry]:
        """Recorded rows of one session, ordered by roll number; empty when not yet marked."""

        return list(
            self._store.list_session_records(
                class_id=int(class_id), subject_id=int(subject_id), attendance_date=attendance_date
            )
        )

    def teacher_id_for_user(self, user_id: int) -> int:
        teacher_id = self._store.get_teacher_id_for_user(int(user_id))
        if teacher_id is None:
            raise NotFoundError("Teacher profile not found")
        return teacher_id

    @staticmethod
    def _normalize(attendance: Mapping[int, object]) -> dict[int, AttendanceStatus]:
        if not attendance:
            raise ValidationError("Attendance list must not be empty")

        out: dict[int, AttendanceStatus] = {}
        for student_id, status in attendance.items():
            try:
                key = int(student_id)
            except (TypeError, ValueError):
                raise ValidationError(f"Invalid student id: {student_id!r}")
            try:
                out[key] = AttendanceStatus(status)
            except ValueError:
                raise ValidationError(f"Invalid attendance status: {status!r}")
        return out

    @staticmethod
    def _check_enrolment(tx: AttendanceUnitOfWork, class_id: int, entries: Mapping[int, AttendanceStatus]) -> None:
        enrolled = set(tx.list_enrolled_student_ids(class_id))
        given = set(entries)
        if given - enrolled:
            raise ValidationError(f"Students not enrolled in class: {sorted(given - enrolled)}")
        if enrolled - given:
            raise ValidationError(f"Attendance missing for students: {sorted(enrolled - given)}")

    def mark_attendance(
        self,
        *,
        class_id: int,
        subject_id: int,
        teacher_id: int,
        attendance_date: date,
        attendance: Mapping[int, object],
    ) -> list[AttendanceRecord]:
        entries = self._normalize(attendance)
        class_id, subject_id, teacher_id = int(class_id), int(subject_id), int(teacher_id)

        if self._store.session_exists(class_id=class_id, subject_id=subject_id, attendance_date=attendance_date):
            raise DuplicateSessionError()

        with self._store.transaction() as tx:
            # Re-check under the transaction; the unique key catches any remaining race.
            if tx.session_exists(class_id=class_id, subject_id=subject_id, attendance_date=attendance_date):
                raise DuplicateSessionError()

            subject = tx.get_subject(subject_id)
            if not subject:
                raise NotFoundError("Subject not found")
            self._check_enrolment(tx, class_id, entries)

            records = [
                tx.insert_record(
                    class_id=class_id,
                    subject_id=subject_id,
                    teacher_id=teacher_id,
                    student_id=student_id,
                    attendance_date=attendance_date,
                    status=status,
                )
                for student_id, status in entries.items()
            ]
            alerts = self.prepare_side_effects(tx, subject=subject, records=records)

        logger.info(
            "Attendance recorded: class=%s subject=%s date=%s records=%s absent=%s",
            class_id,
            subject_id,
            format_iso_date(attendance_date),
            len(records),
            sum(1 for r in records if r.status == AttendanceStatus.ABSENT),
        )

        self.dispatch(alerts)
        self._recompute_analytics(records)
        return records

    def prepare_side_effects(
        self,
        tx: AttendanceUnitOfWork,
        *,
        subject: Subject,
        records: Sequence[AttendanceRecord],
    ) -> list[AbsenceAlert]:
        """Write one notification row per absent record and collect email payloads.

        Runs inside the marking transaction and performs no network I/O.
        """

        alerts: list[AbsenceAlert] = []
        created_at = self._clock()

        for r in records:
            if r.status != AttendanceStatus.ABSENT:
                continue

            student = tx.get_student(r.student_id)
            if not student:
                continue

            attended, total = tx.subject_attendance(student_id=r.student_id, subject_id=r.subject_id)
            subject_pct = attended / total * 100 if total else 100.0
            risk = classify_risk(subject_pct)
            date_text = format_iso_date(r.attendance_date)

            tx.insert_notification(
                student_id=r.student_id,
                type=NotificationType.ABSENCE.value,
                message=AbsenceTemplates.in_app_message(subject.subject_name, date_text, risk),
                meta={
                    "class": student.class_name,
                    "subject": subject.subject_name,
                    "date": date_text,
                    "subjectPct": subject_pct,
                    "riskCategory": risk.value,
                },
                created_at=created_at,
            )

            to = self._resolve_recipient(student)
            if not to:
                continue
            alerts.append(
                AbsenceAlert(
                    to=to,
                    student_id=r.student_id,
                    student_name=student.full_name,
                    subject_name=subject.subject_name,
                    class_name=student.class_name,
                    date_text=date_text,
                    subject_pct=subject_pct,
                    risk_category=risk,
                )
            )

        return alerts

    def dispatch(self, alerts: Sequence[AbsenceAlert]) -> DispatchSummary:
        """Send absence emails one recipient at a time; failures never propagate."""

        if not alerts:
            return DispatchSummary()
        if not self._dispatcher.enabled:
            logger.info("Email disabled; skipped %s absence emails", len(alerts))
            return DispatchSummary(failed=len(alerts))

        delivered = failed = 0
        for a in alerts:
            try:
                self._dispatcher.send_email(
                    to=a.to,
                    subject=AbsenceTemplates.email_subject(a.subject_name, a.date_text),
                    text=AbsenceTemplates.email_text(
                        student_name=a.student_name,
                        subject_name=a.subject_name,
                        class_name=a.class_name,
                        date_text=a.date_text,
                        subject_pct=a.subject_pct,
                        risk=a.risk_category,
                    ),
                )
                delivered += 1
            except EmailDeliveryError as e:
                failed += 1
                logger.warning("Absence email failed for %s: %s", a.to, e)
            except Exception:
                failed += 1
                logger.exception("Absence email failed for %s", a.to)

        logger.info("Absence emails: delivered=%s failed=%s", delivered, failed)
        return DispatchSummary(delivered=delivered, failed=failed)

    def _recompute_analytics(self, records: Sequence[AttendanceRecord]) -> None:
        if not self._analytics:
            return
        seen: set[int] = set()
        for r in records:
            if r.student_id in seen:
                continue
            seen.add(r.student_id)
            try:
                self._analytics.recompute_student_analytics(r.student_id)
            except Exception:
                logger.exception("Analytics recompute failed for student %s", r.student_id)
