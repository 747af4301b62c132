from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class NotFoundError(DomainError):
    """Raised when a referenced entity does not exist."""


class ConflictError(DomainError):
    """Raised when a write collides with existing state."""


class ForbiddenError(DomainError):
    """Raised when a user lacks permission for an action."""


AuthorizationError = ForbiddenError


class DuplicateSessionError(ConflictError):
    def __init__(self, message: str = "Attendance already recorded for this class, subject, and date"):
        super().__init__(message)


class NoAbsenceFoundError(NotFoundError):
    def __init__(self, message: str = "No absence records found for this student on this date"):
        super().__init__(message)


class EmailDeliveryError(Exception):
    """Raised when an email could not be delivered.

    ``response_text`` holds the last raw provider response (or the network
    error) so the failure can be diagnosed from logs.
    """

    def __init__(
        self,
        message: str,
        *,
        response_text: Optional[str] = None,
        status_code: Optional[int] = None,
        attempts: int = 0,
    ):
        super().__init__(message)
        self.response_text = response_text
        self.status_code = status_code
        self.attempts = attempts
