from __future__ import annotations

from typing import Optional

import requests

from ...core.constants import DEFAULT_EMAIL_TIMEOUT_SECONDS
from ..model import EmailMessage, ProviderCheck, ProviderResponse
from .base import EmailTransport, TransportError

SENDGRID_SEND_URL = "https://api.sendgrid.com/v3/mail/send"
SENDGRID_SCOPES_URL = "https://api.sendgrid.com/v3/scopes"


class SendGridTransport(EmailTransport):
    """Send via the SendGrid v3 mail/send API."""

    name = "sendgrid"

    def __init__(
        self,
        *,
        api_key: str,
        sender: str,
        timeout: float = DEFAULT_EMAIL_TIMEOUT_SECONDS,
        http: Optional[requests.Session] = None,
    ):
        self._api_key = api_key
        self._sender = sender
        self._timeout = timeout
        self._http = http or requests.Session()

    def _payload(self, message: EmailMessage) -> dict:
        content = []
        if message.text is not None:
            content.append({"type": "text/plain", "value": message.text})
        if message.html is not None:
            content.append({"type": "text/html", "value": message.html})
        return {
            "personalizations": [{"to": [{"email": message.to}]}],
            "from": {"email": self._sender},
            "subject": message.subject,
            "content": content,
        }

    def deliver(self, message: EmailMessage) -> ProviderResponse:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = self._http.post(
                SENDGRID_SEND_URL,
                json=self._payload(message),
                headers=headers,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(f"SendGrid request failed: {exc}") from exc

        return ProviderResponse(
            status_code=response.status_code,
            text=response.text,
            headers=dict(response.headers),
            message_id=response.headers.get("X-Message-Id"),
        )

    def verify(self) -> ProviderCheck:
        try:
            response = self._http.get(
                SENDGRID_SCOPES_URL,
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            return ProviderCheck(provider=self.name, ok=False, reason=f"SendGrid request failed: {exc}")
        if 200 <= response.status_code < 300:
            return ProviderCheck(provider=self.name, ok=True)
        return ProviderCheck(provider=self.name, ok=False, reason=f"HTTP {response.status_code}: {response.text}")
