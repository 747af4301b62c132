from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from ..model import HistoryEntry, TrendStats


class TrendCalculator(ABC):
    """Calculator interface (Strategy Pattern for attendance trends)."""

    @abstractmethod
    def trend(self, history: Sequence[HistoryEntry]) -> TrendStats:
        raise NotImplementedError
