"""
Domain layer - Pure business logic with zero framework imports.

This package contains the two state machines of the emailauth system:
the login verification challenge and the account recovery workflow.
It defines its own port interfaces for infrastructure abstraction,
ensuring true hexagonal architecture decoupling.
"""

from .challenge import (
    ChallengeResponse,
    SettingsVerificationPolicy,
    VerificationChallenge,
    VerificationSession,
)
from .deferred import DeferredTasks
from .exceptions import (
    DeliveryError,
    EmailAuthError,
    EmailMismatch,
    FieldTooLong,
    InvalidEmail,
    MissingField,
    RateLimited,
    RecoveryValidationError,
)
from .pending import PendingRecord, PendingRequestStore, RecoveryTicketRequest
from .ports import (
    Account,
    AccountDirectory,
    AuditLog,
    ChallengeMessages,
    ChallengeStatus,
    ConfirmStatus,
    EmailContent,
    EmailSender,
    RateLimiter,
    Stash,
    TicketingGateway,
    TicketOutcome,
    VerificationPolicy,
)
from .recovery import ConfirmationResult, RecoverySubmission, RecoveryWorkflow, SubmissionAccepted
from .tokens import TokenGenerator

__all__ = [
    "Account",
    "AccountDirectory",
    "AuditLog",
    "ChallengeMessages",
    "ChallengeResponse",
    "ChallengeStatus",
    "ConfirmStatus",
    "ConfirmationResult",
    "DeferredTasks",
    "DeliveryError",
    "EmailAuthError",
    "EmailContent",
    "EmailMismatch",
    "EmailSender",
    "FieldTooLong",
    "InvalidEmail",
    "MissingField",
    "PendingRecord",
    "PendingRequestStore",
    "RateLimited",
    "RateLimiter",
    "RecoverySubmission",
    "RecoveryTicketRequest",
    "RecoveryValidationError",
    "RecoveryWorkflow",
    "SettingsVerificationPolicy",
    "Stash",
    "SubmissionAccepted",
    "TicketOutcome",
    "TicketingGateway",
    "TokenGenerator",
    "VerificationChallenge",
    "VerificationPolicy",
    "VerificationSession",
]
