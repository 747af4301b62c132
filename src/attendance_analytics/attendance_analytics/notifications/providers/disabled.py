from __future__ import annotations

from ..model import EmailMessage, ProviderCheck, ProviderResponse
from .base import EmailTransport

DISABLED_REASON = "Email disabled; no email provider configured"


class DisabledTransport(EmailTransport):
    """Selected when no provider is configured; the dispatcher refuses to send."""

    name = "disabled"
    enabled = False

    def deliver(self, message: EmailMessage) -> ProviderResponse:
        raise RuntimeError(DISABLED_REASON)

    def verify(self) -> ProviderCheck:
        return ProviderCheck(provider=self.name, ok=False, reason=DISABLED_REASON)
