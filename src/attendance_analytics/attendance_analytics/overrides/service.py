from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable, Optional

from ..analytics.engine import AnalyticsEngine
from ..attendance.repository import AttendanceStore
from ..common.datetime_utils import format_iso_date, now_utc
from ..common.validators import require_min_length
from ..core.constants import MIN_OVERRIDE_REASON_LENGTH
from ..core.enums import AttendanceStatus, Role
from ..core.exceptions import ForbiddenError, NoAbsenceFoundError, NotFoundError

logger = logging.getLogger(__name__)

OVERRIDE_ROLES = {Role.TEACHER, Role.CLASS_TEACHER, Role.HOD}


class OverrideService:
    """Use case: correct a student's absences on one day to present, with audit trail."""

    def __init__(
        self,
        store: AttendanceStore,
        analytics: AnalyticsEngine,
        *,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._store = store
        self._analytics = analytics
        self._clock = clock

    def _authorize(self, *, actor_user_id: int, current_role: Role, class_id: int) -> None:
        if current_role not in OVERRIDE_ROLES:
            raise ForbiddenError("Forbidden")
        if current_role == Role.HOD:
            return
        if self._store.get_class_teacher_user_id(class_id) != int(actor_user_id):
            raise ForbiddenError("You can only override attendance for your class")

    def override_to_present(
        self,
        *,
        student_id: int,
        attendance_date: date,
        reason: str,
        actor_user_id: int,
        current_role: Optional[Role] = None,
    ) -> int:
        """Flip every absent record of the student on that day to present.

        ``current_role=None`` means the caller already authorized the actor.
        Returns the number of records overridden.
        """

        reason = require_min_length(reason, "Reason", MIN_OVERRIDE_REASON_LENGTH)

        student = self._store.get_student(int(student_id))
        if not student:
            raise NotFoundError("Student not found")
        if current_role is not None:
            self._authorize(actor_user_id=actor_user_id, current_role=current_role, class_id=student.class_id)

        now = self._clock()
        with self._store.transaction() as tx:
            absent = tx.list_absent_records_for_day(student_id=student.student_id, attendance_date=attendance_date)
            if not absent:
                raise NoAbsenceFoundError()

            for record in absent:
                tx.mark_present(record_id=record.record_id, reason=reason)
                tx.insert_audit_log(
                    attendance_record_id=record.record_id,
                    actor_user_id=int(actor_user_id),
                    previous_status=AttendanceStatus.ABSENT,
                    new_status=AttendanceStatus.PRESENT,
                    reason=reason,
                    created_at=now,
                )

        logger.info(
            "Attendance override: student=%s date=%s records=%s actor=%s",
            student.student_id,
            format_iso_date(attendance_date),
            len(absent),
            actor_user_id,
        )

        # Analytics are keyed by student, so one recompute covers every changed record.
        try:
            self._analytics.recompute_student_analytics(student.student_id)
        except Exception:
            logger.exception("Analytics recompute failed for student %s", student.student_id)

        return len(absent)
