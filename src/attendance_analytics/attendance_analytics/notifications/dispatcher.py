from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Callable, Optional

from ..common.datetime_utils import now_utc
from ..core.constants import BACKOFF_BASE_MS, BACKOFF_MAX_MS, MAX_SEND_ATTEMPTS
from ..core.exceptions import EmailDeliveryError, ValidationError
from .model import DeliveryReceipt, EmailMessage, ProviderCheck, ProviderResponse
from .providers.base import EmailTransport, TransportError
from .templates import ProviderTestTemplates

logger = logging.getLogger(__name__)


def is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or 500 <= status_code < 600


def parse_retry_after(value: Optional[str], *, now: datetime) -> Optional[int]:
    """Return the Retry-After delay in milliseconds, or None when absent/unparseable.

    Accepts both delta-seconds (``"2"``) and HTTP-date forms.
    """

    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if value.isdigit():
        return int(value) * 1000

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(int((when - now).total_seconds() * 1000), 0)


class NotificationDispatcher:
    """Best-effort outbound email with retry/backoff on transient provider errors.

    The active provider is injected as an ``EmailTransport`` strategy. Each
    ``send_email`` call is independent; no state is kept between calls.
    """

    def __init__(
        self,
        transport: EmailTransport,
        *,
        max_attempts: int = MAX_SEND_ATTEMPTS,
        base_delay_ms: int = BACKOFF_BASE_MS,
        max_delay_ms: int = BACKOFF_MAX_MS,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._transport = transport
        self._max_attempts = int(max_attempts)
        self._base_delay_ms = int(base_delay_ms)
        self._max_delay_ms = int(max_delay_ms)
        self._sleep = sleep
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return self._transport.enabled

    @property
    def provider_name(self) -> str:
        return self._transport.name

    def verify(self) -> ProviderCheck:
        check = self._transport.verify()
        if check.ok:
            logger.info("Email provider %s verified", check.provider)
        else:
            logger.warning("Email provider %s failed verification: %s", check.provider, check.reason)
        return check

    def send_test_email(self, to: str) -> DeliveryReceipt:
        """Send the fixed provider test message through the normal retry path."""

        return self.send_email(
            to=to,
            subject=ProviderTestTemplates.subject,
            text=ProviderTestTemplates.text(self._clock()),
        )

    def backoff_ms(self, attempt: int) -> int:
        """Exponential delay after the given (1-based) failed attempt."""

        return min(self._base_delay_ms * 2 ** (attempt - 1), self._max_delay_ms)

    def _delay_ms(self, attempt: int, response: Optional[ProviderResponse]) -> int:
        if response is not None:
            retry_after = parse_retry_after(response.header("Retry-After"), now=self._clock())
            if retry_after is not None:
                return min(retry_after, self._max_delay_ms)
        return self.backoff_ms(attempt)

    def send_email(
        self,
        *,
        to: str,
        subject: str,
        text: Optional[str] = None,
        html: Optional[str] = None,
    ) -> DeliveryReceipt:
        if not to or not to.strip():
            raise ValidationError("Recipient address is required")
        if text is None and html is None:
            raise ValidationError("Either text or html body is required")
        if not self._transport.enabled:
            raise EmailDeliveryError("Email disabled; no email provider configured")

        message = EmailMessage(to=to.strip(), subject=subject, text=text, html=html)

        attempt = 0
        while True:
            attempt += 1
            response: Optional[ProviderResponse] = None
            try:
                response = self._transport.deliver(message)
            except TransportError as exc:
                if attempt >= self._max_attempts:
                    raise EmailDeliveryError(
                        f"Email to {message.to} failed after {attempt} attempts: {exc}",
                        response_text=str(exc),
                        attempts=attempt,
                    ) from exc
                logger.info("Email to %s: network error on attempt %s (%s)", message.to, attempt, exc)
            else:
                if response.ok:
                    return DeliveryReceipt(
                        message_id=response.message_id,
                        accepted=(message.to,),
                        rejected=(),
                        provider_response=response.text,
                    )

                if not is_retryable_status(response.status_code):
                    raise EmailDeliveryError(
                        f"Email to {message.to} rejected by {self._transport.name} "
                        f"(HTTP {response.status_code}): {response.text}",
                        response_text=response.text,
                        status_code=response.status_code,
                        attempts=attempt,
                    )

                if attempt >= self._max_attempts:
                    raise EmailDeliveryError(
                        f"Email to {message.to} failed after {attempt} attempts "
                        f"(HTTP {response.status_code}): {response.text}",
                        response_text=response.text,
                        status_code=response.status_code,
                        attempts=attempt,
                    )

            delay_ms = self._delay_ms(attempt, response)
            logger.info(
                "Email to %s: retrying after attempt %s (status=%s) in %sms",
                message.to,
                attempt,
                response.status_code if response is not None else "network",
                delay_ms,
            )
            self._sleep(delay_ms / 1000)
