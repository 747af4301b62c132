from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..core.enums import AttendanceStatus


@dataclass(frozen=True)
class AuditLogEntry:
    """Append-only audit row; one per overridden attendance record."""

    audit_id: int
    attendance_record_id: int
    actor_user_id: int
    previous_status: AttendanceStatus
    new_status: AttendanceStatus
    reason: str
    created_at: datetime

    def to_dict(self) -> dict:
        return {
            "audit_id": self.audit_id,
            "attendance_record_id": self.attendance_record_id,
            "actor_user_id": self.actor_user_id,
            "previous_status": self.previous_status.value,
            "new_status": self.new_status.value,
            "reason": self.reason,
            "created_at": self.created_at.isoformat(),
        }
