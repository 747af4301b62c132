from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.enums import RiskLevel
from ..core.exceptions import NotFoundError
from ..core.risk import is_defaulter
from .model import AnalyticsCache
from .repository import AnalyticsRepository


@dataclass(frozen=True)
class RiskDistribution:
    safe: int
    moderate: int
    high: int

    @property
    def total(self) -> int:
        return self.safe + self.moderate + self.high

    def to_dict(self) -> dict:
        return {"safe": self.safe, "moderate": self.moderate, "high": self.high, "total": self.total}


class AnalyticsReportService:
    """Read side of the analytics cache used by dashboards."""

    def __init__(self, analytics: AnalyticsRepository):
        self._analytics = analytics

    def get_student_analytics(self, student_id: int) -> AnalyticsCache:
        cache = self._analytics.get(int(student_id))
        if not cache:
            raise NotFoundError("Analytics not found")
        return cache

    def risk_distribution(self, *, class_id: Optional[int] = None) -> RiskDistribution:
        counts = {level: 0 for level in RiskLevel}
        for row in self._analytics.list_risk_rows(class_id=class_id):
            # Not yet computed counts as safe, same as the empty-history default.
            counts[row.risk_level or RiskLevel.SAFE] += 1
        return RiskDistribution(
            safe=counts[RiskLevel.SAFE],
            moderate=counts[RiskLevel.MODERATE],
            high=counts[RiskLevel.HIGH],
        )

    def list_defaulters(self, *, class_id: Optional[int] = None) -> list[dict]:
        out = []
        for row in self._analytics.list_risk_rows(class_id=class_id):
            if row.overall_pct is None or not is_defaulter(row.overall_pct):
                continue
            out.append(
                {
                    "student_id": row.student_id,
                    "full_name": row.full_name,
                    "roll_number": row.roll_number,
                    "class_id": row.class_id,
                    "overall_pct": round(row.overall_pct, 2),
                }
            )
        out.sort(key=lambda x: x["overall_pct"])
        return out
