"""
Domain exceptions - Semantic error types for login verification and recovery.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.
Ticketing failures are not exceptions: they are reported as TicketOutcome
values so callers can keep the pending request for a retry.
"""


class EmailAuthError(Exception):
    """Base class for emailauth domain errors."""

    pass


class RecoveryValidationError(EmailAuthError):
    """Submitted recovery form is malformed. No side effects happened."""

    message_key = "account-recovery-invalid-input"

    def __init__(self, field: str) -> None:
        super().__init__(field)
        self.field = field


class InvalidEmail(RecoveryValidationError):
    """Email address failed validation."""

    message_key = "account-recovery-invalid-email"


class EmailMismatch(RecoveryValidationError):
    """Contact email and its confirmation differ."""

    message_key = "account-recovery-email-mismatch"


class FieldTooLong(RecoveryValidationError):
    """Field exceeds its length cap."""

    message_key = "account-recovery-field-too-long"


class MissingField(RecoveryValidationError):
    """Required field is empty after trimming."""

    message_key = "account-recovery-missing-field"


class RateLimited(EmailAuthError):
    """Rate-limit policy tripped for this action."""

    pass


class DeliveryError(EmailAuthError):
    """Email transport failed to accept a message."""

    pass
