from __future__ import annotations

from typing import Sequence

from ...core.constants import TREND_WINDOW
from ...core.enums import AttendanceStatus
from ..model import HistoryEntry, TrendStats
from .base import TrendCalculator

Point = tuple[float, float]


def cumulative_points(history: Sequence[HistoryEntry]) -> list[Point]:
    """Points (x, y) where y is the present-percentage of history[:x]."""

    points: list[Point] = []
    present = 0
    for idx, entry in enumerate(history, start=1):
        if entry.status == AttendanceStatus.PRESENT:
            present += 1
        points.append((float(idx), present / idx * 100))
    return points


def ols_slope(points: Sequence[Point]) -> float:
    n = len(points)
    if n == 0:
        return 0.0
    sum_x = sum(x for x, _ in points)
    sum_y = sum(y for _, y in points)
    sum_xy = sum(x * y for x, y in points)
    sum_x2 = sum(x * x for x, _ in points)
    # A single point has a zero denominator; its numerator is zero too.
    denominator = (n * sum_x2 - sum_x * sum_x) or 1
    return (n * sum_xy - sum_x * sum_y) / denominator


def sample_variance(values: Sequence[float]) -> float:
    n = len(values)
    if n < 2:
        return 0.0
    mean = sum(values) / n
    return sum((v - mean) ** 2 for v in values) / (n - 1)


class LeastSquaresTrendCalculator(TrendCalculator):
    """Trend over the last ``window`` records.

    rate_of_decline: OLS slope of the cumulative percentage.
    acceleration: slope of the second half minus slope of the first half.
    variance: sample variance of the cumulative percentages.
    """

    def __init__(self, window: int = TREND_WINDOW):
        self._window = int(window)

    def trend(self, history: Sequence[HistoryEntry]) -> TrendStats:
        points = cumulative_points(list(history)[-self._window:])
        n = len(points)
        if n < 2:
            return TrendStats()

        acceleration = 0.0
        if n >= 3:
            mid = n // 2
            acceleration = ols_slope(points[mid:]) - ols_slope(points[:mid])

        return TrendStats(
            rate_of_decline=ols_slope(points),
            acceleration=acceleration,
            variance=sample_variance([y for _, y in points]),
        )
