from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping, Optional


@dataclass(frozen=True)
class Notification:
    """In-app notification row created once per absent record at marking time."""

    notification_id: int
    student_id: int
    type: str
    message: str
    meta: dict
    read: bool
    created_at: datetime

    def to_dict(self) -> dict:
        return {
            "notification_id": self.notification_id,
            "type": self.type,
            "message": self.message,
            "meta": self.meta,
            "read": self.read,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    text: Optional[str] = None
    html: Optional[str] = None


@dataclass(frozen=True)
class ProviderResponse:
    """Uniform view of one provider attempt (HTTP semantics for status codes)."""

    status_code: int
    text: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)
    message_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def header(self, name: str) -> Optional[str]:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


@dataclass(frozen=True)
class DeliveryReceipt:
    message_id: Optional[str]
    accepted: tuple[str, ...]
    rejected: tuple[str, ...]
    provider_response: str

    def to_dict(self) -> dict:
        return {
            "message_id": self.message_id,
            "accepted": list(self.accepted),
            "rejected": list(self.rejected),
            "provider_response": self.provider_response,
        }


@dataclass(frozen=True)
class DispatchSummary:
    delivered: int = 0
    failed: int = 0


@dataclass(frozen=True)
class ProviderCheck:
    """Outcome of a provider health check (credentials or connection)."""

    provider: str
    ok: bool
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {"provider": self.provider, "ok": self.ok, "reason": self.reason}
