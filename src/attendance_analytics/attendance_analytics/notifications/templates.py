from __future__ import annotations

from datetime import datetime

from ..core.constants import EMAIL_SIGNATURE
from ..core.enums import RiskLevel


class AbsenceTemplates:
    """Pre-defined absence notification texts."""

    @staticmethod
    def in_app_message(subject_name: str, date_text: str, risk: RiskLevel) -> str:
        return f"You were marked absent for {subject_name} on {date_text}. Risk category: {risk.value}."

    @staticmethod
    def email_subject(subject_name: str, date_text: str) -> str:
        return f"Absence Alert: {subject_name} ({date_text})"

    @staticmethod
    def email_text(
        *,
        student_name: str,
        subject_name: str,
        class_name: str,
        date_text: str,
        subject_pct: float,
        risk: RiskLevel,
    ) -> str:
        return (
            f"Dear {student_name},\n\n"
            f"You were marked absent for {subject_name} on {date_text} in {class_name}.\n"
            f"Current risk category in {subject_name}: {risk.value.upper()}.\n"
            f"Current attendance in {subject_name}: {subject_pct:.2f}%.\n\n"
            "Please ensure regular attendance.\n"
            f"- {EMAIL_SIGNATURE}"
        )


class ProviderTestTemplates:
    """Texts of the operator's provider test email."""

    subject = f"{EMAIL_SIGNATURE} Email Provider Test"

    @staticmethod
    def text(sent_at: datetime) -> str:
        return f"This is a test email from {EMAIL_SIGNATURE}.\n\nSent at: {sent_at.isoformat()}"
