from __future__ import annotations

import smtplib
from email.message import EmailMessage as MimeMessage
from email.utils import make_msgid
from typing import Callable, Optional

from ...core.constants import DEFAULT_EMAIL_TIMEOUT_SECONDS
from ..model import EmailMessage, ProviderCheck, ProviderResponse
from .base import EmailTransport, TransportError

# SMTP replies are mapped onto the HTTP-style status model the dispatcher retries on.
_OK = 200
_TRANSIENT = 503
_PERMANENT = 400


class SmtpTransport(EmailTransport):
    """Raw SMTP relay (``smtplib``), used when no HTTP provider is configured."""

    name = "smtp"

    def __init__(
        self,
        *,
        host: str,
        port: int = 587,
        user: str,
        password: str,
        sender: str,
        secure: bool = False,
        require_tls: bool = False,
        timeout: float = DEFAULT_EMAIL_TIMEOUT_SECONDS,
        connect: Optional[Callable[..., smtplib.SMTP]] = None,
    ):
        self._host = host
        self._port = int(port)
        self._user = user
        self._password = password
        self._sender = sender
        self._secure = secure
        self._require_tls = require_tls
        self._timeout = timeout
        self._connect = connect or (smtplib.SMTP_SSL if secure else smtplib.SMTP)

    def _build(self, message: EmailMessage) -> MimeMessage:
        mime = MimeMessage()
        mime["From"] = self._sender
        mime["To"] = message.to
        mime["Subject"] = message.subject
        mime["Message-ID"] = make_msgid()
        mime.set_content(message.text or "")
        if message.html is not None:
            mime.add_alternative(message.html, subtype="html")
        return mime

    def _open_session(self, smtp) -> None:
        smtp.ehlo()
        if not self._secure and (self._require_tls or smtp.has_extn("starttls")):
            smtp.starttls()
            smtp.ehlo()
        smtp.login(self._user, self._password)

    def deliver(self, message: EmailMessage) -> ProviderResponse:
        mime = self._build(message)
        try:
            with self._connect(self._host, self._port, timeout=self._timeout) as smtp:
                self._open_session(smtp)
                refused = smtp.send_message(mime)
        except smtplib.SMTPRecipientsRefused as exc:
            return ProviderResponse(status_code=_PERMANENT, text=str(exc.recipients))
        except smtplib.SMTPResponseException as exc:
            code = _TRANSIENT if 400 <= exc.smtp_code < 500 else _PERMANENT
            return ProviderResponse(status_code=code, text=f"{exc.smtp_code} {exc.smtp_error!r}")
        except (smtplib.SMTPException, OSError) as exc:
            raise TransportError(f"SMTP delivery failed: {exc}") from exc

        if refused:
            return ProviderResponse(status_code=_PERMANENT, text=str(refused))
        return ProviderResponse(status_code=_OK, text="250 OK", message_id=mime["Message-ID"])

    def verify(self) -> ProviderCheck:
        """Connect, negotiate TLS and log in without sending a message."""

        try:
            with self._connect(self._host, self._port, timeout=self._timeout) as smtp:
                self._open_session(smtp)
        except (smtplib.SMTPException, OSError) as exc:
            return ProviderCheck(provider=self.name, ok=False, reason=str(exc))
        return ProviderCheck(provider=self.name, ok=True)
