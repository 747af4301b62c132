from __future__ import annotations

from typing import Optional

import requests

from ...core.constants import DEFAULT_EMAIL_TIMEOUT_SECONDS
from ..model import EmailMessage, ProviderCheck, ProviderResponse
from .base import EmailTransport, TransportError


class MailgunTransport(EmailTransport):
    """Send via the Mailgun HTTP API (``POST /v3/<domain>/messages``)."""

    name = "mailgun"

    def __init__(
        self,
        *,
        api_key: str,
        domain: str,
        sender: str,
        api_base_url: str = "https://api.mailgun.net",
        timeout: float = DEFAULT_EMAIL_TIMEOUT_SECONDS,
        http: Optional[requests.Session] = None,
    ):
        self._api_key = api_key
        self._domain = domain
        self._sender = sender
        self._api_base_url = api_base_url.rstrip("/")
        self._url = f"{self._api_base_url}/v3/{domain}/messages"
        self._timeout = timeout
        self._http = http or requests.Session()

    def deliver(self, message: EmailMessage) -> ProviderResponse:
        data = {"from": self._sender, "to": message.to, "subject": message.subject}
        if message.text is not None:
            data["text"] = message.text
        if message.html is not None:
            data["html"] = message.html

        try:
            response = self._http.post(self._url, auth=("api", self._api_key), data=data, timeout=self._timeout)
        except requests.RequestException as exc:
            raise TransportError(f"Mailgun request failed: {exc}") from exc

        message_id = None
        if 200 <= response.status_code < 300:
            try:
                message_id = response.json().get("id")
            except ValueError:
                message_id = None

        return ProviderResponse(
            status_code=response.status_code,
            text=response.text,
            headers=dict(response.headers),
            message_id=message_id,
        )

    def verify(self) -> ProviderCheck:
        """Look up the sending domain; a 200 proves both the key and the domain."""

        url = f"{self._api_base_url}/v3/domains/{self._domain}"
        try:
            response = self._http.get(url, auth=("api", self._api_key), timeout=self._timeout)
        except requests.RequestException as exc:
            return ProviderCheck(provider=self.name, ok=False, reason=f"Mailgun request failed: {exc}")
        if 200 <= response.status_code < 300:
            return ProviderCheck(provider=self.name, ok=True)
        return ProviderCheck(provider=self.name, ok=False, reason=f"HTTP {response.status_code}: {response.text}")
