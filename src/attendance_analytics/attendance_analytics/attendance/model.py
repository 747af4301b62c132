from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from ..core.enums import AttendanceStatus, RiskLevel


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one student's status in one class/subject session."""

    record_id: int
    class_id: int
    subject_id: int
    teacher_id: int
    student_id: int
    attendance_date: date
    status: AttendanceStatus
    override_reason: Optional[str] = None


@dataclass(frozen=True)
class Subject:
    subject_id: int
    subject_name: str


@dataclass(frozen=True)
class StudentProfile:
    """Read-model joining student, user and class rows."""

    student_id: int
    user_id: int
    full_name: str
    email: Optional[str]
    class_id: int
    class_name: str
    roll_number: str = ""


@dataclass(frozen=True)
class AbsenceAlert:
    """Email payload prepared inside the marking transaction, sent after commit."""

    to: str
    student_id: int
    student_name: str
    subject_name: str
    class_name: str
    date_text: str
    subject_pct: float
    risk_category: RiskLevel


@dataclass(frozen=True)
class SessionEntry:
    """Read-model: one row of a recorded session with the student's name and roll number."""

    record_id: int
    student_id: int
    full_name: str
    roll_number: str
    status: AttendanceStatus
    override_reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "record_id": self.record_id,
            "student_id": self.student_id,
            "student_name": self.full_name,
            "roll_number": self.roll_number,
            "status": self.status.value,
            "override_reason": self.override_reason,
        }
