from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import AnalyticsCache, HistoryEntry, StudentRiskRow


class AnalyticsRepository(Protocol):
    def list_history(self, student_id: int) -> Sequence[HistoryEntry]:
        """All records of the student, oldest first (ties broken by record id)."""

        raise NotImplementedError

    def upsert(self, cache: AnalyticsCache) -> None:
        raise NotImplementedError

    def get(self, student_id: int) -> Optional[AnalyticsCache]:
        raise NotImplementedError

    def list_student_ids(self) -> Sequence[int]:
        raise NotImplementedError

    def list_risk_rows(self, *, class_id: Optional[int] = None) -> Sequence[StudentRiskRow]:
        raise NotImplementedError
