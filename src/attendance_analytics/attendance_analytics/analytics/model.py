from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import AttendanceStatus, RiskLevel


@dataclass(frozen=True)
class HistoryEntry:
    """One attendance record as seen by the analytics engine."""

    record_id: int
    subject_id: int
    subject_name: str
    attendance_date: date
    status: AttendanceStatus


@dataclass(frozen=True)
class SubjectBreakdown:
    subject_id: int
    subject_name: str
    attended: int
    total: int
    pct: float

    def to_dict(self) -> dict:
        return {
            "subject_id": self.subject_id,
            "subject_name": self.subject_name,
            "attended": self.attended,
            "total": self.total,
            "pct": self.pct,
        }


@dataclass(frozen=True)
class TrendStats:
    rate_of_decline: float = 0.0
    acceleration: float = 0.0
    variance: float = 0.0


@dataclass(frozen=True)
class AnalyticsCache:
    """Derived per-student analytics row. Fully replaced on every recompute."""

    student_id: int
    overall_pct: float
    subject_wise: tuple[SubjectBreakdown, ...]
    rate_of_decline: float
    acceleration: float
    variance: float
    weekly_avg: float
    term_avg: float
    risk_level: RiskLevel
    last_computed_at: datetime

    def to_dict(self) -> dict:
        return {
            "student_id": self.student_id,
            "overall_pct": self.overall_pct,
            "subject_wise": [s.to_dict() for s in self.subject_wise],
            "rate_of_decline": self.rate_of_decline,
            "acceleration": self.acceleration,
            "variance": self.variance,
            "weekly_avg": self.weekly_avg,
            "term_avg": self.term_avg,
            "risk_level": self.risk_level.value,
            "last_computed_at": self.last_computed_at.isoformat(),
        }


@dataclass(frozen=True)
class StudentRiskRow:
    """Read-model for class dashboards: student plus cached analytics (if any)."""

    student_id: int
    full_name: str
    roll_number: str
    class_id: int
    overall_pct: Optional[float] = None
    risk_level: Optional[RiskLevel] = None
