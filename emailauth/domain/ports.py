"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure and from the host application, together with the
closed result enums the state machines report. Adapters implement these
protocols through structural subtyping.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol


class ChallengeStatus(str, Enum):
    """
    Outcome of one step of the login verification challenge.

    State Transitions:
    - begin:     NOT_REQUIRED -> PASS, or -> ISSUED
    - continue_: ISSUED -> PASS | RETRY | FAIL
    - continue_: RETRY -> PASS | RETRY | FAIL

    FAIL is terminal for the session: once the retry limit is exhausted,
    every further submission returns FAIL, including the correct code.
    """

    PASS = "pass"
    ISSUED = "issued"
    RETRY = "retry"
    FAIL = "fail"


class TicketOutcome(str, Enum):
    """
    Result of a ticket creation attempt.

    CREATED is the only success. Every other value is a closed error kind
    the user is shown a dedicated message for.
    """

    CREATED = "created"
    INVALID_DATA = "invalid_data"
    RATE_LIMITED = "rate_limited"
    SERVICE_UNAVAILABLE = "service_unavailable"
    GENERIC_ERROR = "generic_error"


class ConfirmStatus(str, Enum):
    """
    Result of following an account recovery confirmation link.

    - SUCCESS: ticket created, stash entry deleted
    - RESENT: link was stale, a fresh link was emailed, old entry deleted
    - RESEND_FAILED: link was stale and the fresh email failed, old entry kept
    - TICKET_FAILED: ticketing returned an error, entry kept for retry
    - BAD_TOKEN: unknown, malformed or already used token
    """

    SUCCESS = "success"
    RESENT = "resent"
    RESEND_FAILED = "resend_failed"
    TICKET_FAILED = "ticket_failed"
    BAD_TOKEN = "bad_token"


@dataclass(frozen=True)
class Account:
    """Host-supplied view of the account logging in."""

    name: str
    email: str | None
    email_confirmed: bool


@dataclass(frozen=True)
class EmailContent:
    """Multipart email body."""

    text: str
    html: str


@dataclass(frozen=True)
class ChallengeMessages:
    """
    User-facing texts for one challenge issuance.

    The verification code is never part of these texts: it is appended
    to the body by the challenge after the policy has had its say.
    """

    prompt: str
    subject: str
    body: str


class EmailSender(Protocol):
    """Port interface for email delivery."""

    def send(self, to: str, sender: str, subject: str, body: "str | EmailContent") -> None:
        """
        Deliver a message.

        Args:
            to: Recipient address
            sender: From address
            subject: Subject line
            body: Plain text or a text/html pair

        Raises:
            DeliveryError: If the transport refused or failed the message
        """
        ...


class Stash(Protocol):
    """Port interface for a key/value store with per-key TTL."""

    def get(self, key: str) -> dict[str, Any] | None:
        """Return the stored value, or None if absent or expired."""
        ...

    def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        """Store value under key for ttl_seconds, replacing any previous value."""
        ...

    def delete(self, key: str) -> None:
        """Remove key. Deleting an absent key is a no-op."""
        ...


class TicketingGateway(Protocol):
    """Port interface for the external support ticketing system."""

    def create_ticket(self, request: Any) -> TicketOutcome:
        """
        Create a ticket for a RecoveryTicketRequest.

        Expected failures are reported through the returned outcome,
        never raised.
        """
        ...


class RateLimiter(Protocol):
    """Port interface for a rate-limit policy (binary signal only)."""

    def is_limited(self, action: str, key: str) -> bool:
        """Record one hit for (action, key) and report whether it is over the limit."""
        ...


class AccountDirectory(Protocol):
    """Port interface to the host's account storage."""

    def load(self, name: str) -> Account | None:
        """Load the live state of an account."""
        ...

    def mark_email_confirmed(self, name: str, email: str) -> None:
        """Mark the given address of the account as confirmed."""
        ...


class VerificationPolicy(Protocol):
    """Port interface deciding who is challenged and with which texts."""

    def should_require_verification(self, account: Account) -> bool:
        """Return True if this login must pass an emailed code."""
        ...

    def customize_messages(self, account: Account, defaults: ChallengeMessages) -> ChallengeMessages:
        """Return the messages to use, starting from the defaults."""
        ...


class AuditLog(Protocol):
    """Port interface for security audit records."""

    def record_failed_verification(self, account: Account, ip: str | None) -> None:
        """Record a wrong login code submission."""
        ...
