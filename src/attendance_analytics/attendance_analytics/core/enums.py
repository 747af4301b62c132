from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User roles used for authorization."""

    STUDENT = "student"
    TEACHER = "teacher"
    CLASS_TEACHER = "class_teacher"
    HOD = "hod"


class AttendanceStatus(str, Enum):
    """Attendance status stored per (student, subject, class, date)."""

    PRESENT = "present"
    ABSENT = "absent"


class RiskLevel(str, Enum):
    SAFE = "safe"
    MODERATE = "moderate"
    HIGH = "high"


class NotificationType(str, Enum):
    ABSENCE = "absence"
