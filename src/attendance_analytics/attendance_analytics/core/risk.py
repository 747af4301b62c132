from __future__ import annotations

from .constants import MODERATE_THRESHOLD_PCT, SAFE_THRESHOLD_PCT
from .enums import RiskLevel


def classify_risk(pct: float) -> RiskLevel:
    """Map an attendance percentage to its risk tier.

    Every consumer (analytics cache, absence notifications, defaulter lists)
    goes through this function; the thresholds live nowhere else.
    """

    if pct >= SAFE_THRESHOLD_PCT:
        return RiskLevel.SAFE
    if pct >= MODERATE_THRESHOLD_PCT:
        return RiskLevel.MODERATE
    return RiskLevel.HIGH


def is_defaulter(pct: float) -> bool:
    return classify_risk(pct) == RiskLevel.HIGH
