from __future__ import annotations

from abc import ABC, abstractmethod

from ..model import EmailMessage, ProviderCheck, ProviderResponse


class TransportError(Exception):
    """Network-level failure: the provider could not be reached or did not answer."""


class EmailTransport(ABC):
    """Strategy Pattern: one outbound email provider.

    ``deliver`` performs exactly one attempt and reports the outcome as a
    ``ProviderResponse``; retry policy lives in the dispatcher. ``verify``
    checks credentials or connectivity without sending anything.
    """

    name: str = "abstract"
    enabled: bool = True

    @abstractmethod
    def deliver(self, message: EmailMessage) -> ProviderResponse:
        raise NotImplementedError

    @abstractmethod
    def verify(self) -> ProviderCheck:
        raise NotImplementedError
