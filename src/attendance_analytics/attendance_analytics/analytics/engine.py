from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional, Sequence

from ..common.datetime_utils import now_utc
from ..core.constants import OPTIMISTIC_DEFAULT_PCT
from ..core.enums import AttendanceStatus, RiskLevel
from ..core.risk import classify_risk
from .calculator.base import TrendCalculator
from .calculator.least_squares import LeastSquaresTrendCalculator
from .model import AnalyticsCache, HistoryEntry, SubjectBreakdown
from .repository import AnalyticsRepository

logger = logging.getLogger(__name__)


class AnalyticsEngine:
    """Recomputes the per-student analytics cache from attendance history.

    A recompute is a pure function of the student's full history followed by
    a single upsert, so it is safe to call redundantly and to retry.
    """

    def __init__(
        self,
        analytics: AnalyticsRepository,
        *,
        calculator: Optional[TrendCalculator] = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._analytics = analytics
        self._calculator = calculator or LeastSquaresTrendCalculator()
        self._clock = clock

    def compute(self, student_id: int, history: Sequence[HistoryEntry], *, computed_at: datetime) -> AnalyticsCache:
        if not history:
            # An unassessed student must not show up as a defaulter.
            return AnalyticsCache(
                student_id=student_id,
                overall_pct=OPTIMISTIC_DEFAULT_PCT,
                subject_wise=(),
                rate_of_decline=0.0,
                acceleration=0.0,
                variance=0.0,
                weekly_avg=OPTIMISTIC_DEFAULT_PCT,
                term_avg=OPTIMISTIC_DEFAULT_PCT,
                risk_level=RiskLevel.SAFE,
                last_computed_at=computed_at,
            )

        total = len(history)
        present = sum(1 for h in history if h.status == AttendanceStatus.PRESENT)
        overall_pct = present / total * 100

        trend = self._calculator.trend(history)

        # Weekly and term windows are not bucketed separately yet.
        return AnalyticsCache(
            student_id=student_id,
            overall_pct=overall_pct,
            subject_wise=self._subject_breakdown(history),
            rate_of_decline=trend.rate_of_decline,
            acceleration=trend.acceleration,
            variance=trend.variance,
            weekly_avg=overall_pct,
            term_avg=overall_pct,
            risk_level=classify_risk(overall_pct),
            last_computed_at=computed_at,
        )

    @staticmethod
    def _subject_breakdown(history: Sequence[HistoryEntry]) -> tuple[SubjectBreakdown, ...]:
        by_subject: dict[int, dict] = {}
        for h in history:
            s = by_subject.get(h.subject_id)
            if not s:
                s = {"subject_name": h.subject_name, "attended": 0, "total": 0}
                by_subject[h.subject_id] = s
            s["total"] += 1
            if h.status == AttendanceStatus.PRESENT:
                s["attended"] += 1

        return tuple(
            SubjectBreakdown(
                subject_id=subject_id,
                subject_name=s["subject_name"],
                attended=s["attended"],
                total=s["total"],
                pct=s["attended"] / s["total"] * 100 if s["total"] else OPTIMISTIC_DEFAULT_PCT,
            )
            for subject_id, s in by_subject.items()
        )

    def recompute_student_analytics(self, student_id: int) -> AnalyticsCache:
        history = self._analytics.list_history(student_id)
        cache = self.compute(student_id, history, computed_at=self._clock())
        self._analytics.upsert(cache)
        logger.debug(
            "Analytics recomputed for student %s: overall=%.2f risk=%s",
            student_id,
            cache.overall_pct,
            cache.risk_level.value,
        )
        return cache

    def recompute_all_students_analytics(self) -> int:
        """Periodic sweep: recompute every student sequentially, one at a time."""

        done = 0
        for student_id in self._analytics.list_student_ids():
            try:
                self.recompute_student_analytics(student_id)
                done += 1
            except Exception:
                logger.exception("Analytics recompute failed for student %s", student_id)
        logger.info("Analytics sweep finished: %s students recomputed", done)
        return done
