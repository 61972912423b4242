"""
Account recovery workflow - stash, confirm, deliver.

A logged-out user submits a recovery request. The request is validated,
stashed under a fresh token, and a confirmation link is emailed to the
contact address. Following the link delivers the request to the ticketing
system exactly once.

Lifecycle
=========

    submit:   Submitted -> Stashed            (valid input, link emailed)
    confirm:  Stashed   -> ConfirmedOK        (ticket created, entry deleted)
              Stashed   -> TicketFailed       (ticketing error, entry kept for retry)
              Stashed   -> Reissued           (link stale, new link sent, old entry deleted)
              Stashed   -> ReissueFailed      (link stale, email failed, old entry kept)
              (unknown) -> BadToken

The stash TTL outlives the confirmation window so that a stale link can
still be recognized and turned into a resend instead of a dead end.
"""

import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from .exceptions import DeliveryError, EmailMismatch, FieldTooLong, InvalidEmail, MissingField, RateLimited
from .pending import PendingRequestStore, RecoveryTicketRequest, token_reference
from .ports import ConfirmStatus, EmailSender, RateLimiter, TicketingGateway, TicketOutcome
from .tokens import TokenGenerator
from .validation import emails_match, is_strictly_valid_email, is_valid_email, mask_email

logger = logging.getLogger(__name__)

MAX_USERNAME_LENGTH = 255
MAX_EMAIL_LENGTH = 254
MAX_DESCRIPTION_LENGTH = 5000

RATE_LIMIT_ACTION = "accountrecovery-submit"

TOKEN_PATTERN = re.compile(r"[0-9a-fA-F]+")


@dataclass(frozen=True)
class RecoverySubmission:
    """Raw recovery form input, before trimming and validation."""

    username: str | None
    contact_email: str | None
    contact_email_confirm: str | None
    registered_email: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class SubmissionAccepted:
    """
    Result of a valid submission.

    delivered is False when the confirmation link could not be sent; the
    stash entry is left to expire on its own.
    """

    request: RecoveryTicketRequest
    delivered: bool


@dataclass(frozen=True)
class ConfirmationResult:
    """Result of following a confirmation link."""

    status: ConfirmStatus
    ticket_outcome: TicketOutcome | None = None
    error: str | None = None


def format_duration(seconds: int) -> str:
    """
    Human-readable duration for emails.

    900 -> "15 minutes", 3600 -> "1 hour", 5400 -> "1 hour 30 minutes"
    """
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)

    parts = []
    for amount, unit in ((hours, "hour"), (minutes, "minute"), (secs, "second")):
        if amount:
            parts.append(f"{amount} {unit}" + ("s" if amount != 1 else ""))
    return " ".join(parts) or "0 seconds"


def _clean(value: str | None) -> str:
    return value.strip() if isinstance(value, str) else ""


def _check_length(name: str, value: str, limit: int) -> None:
    if len(value) > limit:
        raise FieldTooLong(name)


@dataclass
class RecoveryWorkflow:
    """
    Domain service for account recovery requests.

    Orchestrates validation, token issuance, confirmation emails,
    re-issuance of stale links and the hand-off to ticketing.
    """

    store: PendingRequestStore
    gateway: TicketingGateway
    email_sender: EmailSender
    rate_limiter: RateLimiter
    sender_address: str
    confirmation_url: Callable[[str], str]
    site_name: str = "Wiki"
    tokens: TokenGenerator = field(default_factory=TokenGenerator)
    token_expiry_seconds: int = 900
    clock: Callable[[], float] = time.time

    def submit(self, submission: RecoverySubmission, client_key: str) -> SubmissionAccepted:
        """
        Validate a recovery form and email a confirmation link.

        Args:
            submission: Raw form input
            client_key: Rate-limit bucket for the submitter (e.g. client IP)

        Returns:
            SubmissionAccepted with the normalized request

        Raises:
            RateLimited: If the rate-limit policy tripped
            RecoveryValidationError: If any field is invalid (no side effects)
        """
        if self.rate_limiter.is_limited(RATE_LIMIT_ACTION, client_key):
            logger.info("Account recovery submission rate limited", extra={"client": client_key})
            raise RateLimited(RATE_LIMIT_ACTION)

        request = self._validate(submission)

        try:
            self._issue_confirmation(request)
        except DeliveryError:
            return SubmissionAccepted(request=request, delivered=False)
        return SubmissionAccepted(request=request, delivered=True)

    def confirm(self, token: str) -> ConfirmationResult:
        """
        Handle a confirmation link.

        Never raises: unknown tokens are BAD_TOKEN and every unexpected
        fault from a collaborator is reported as a generic ticketing error.
        """
        if not TOKEN_PATTERN.fullmatch(token or ""):
            return ConfirmationResult(status=ConfirmStatus.BAD_TOKEN)

        token_ref = token_reference(token)
        try:
            record = self.store.get(token)
        except Exception:
            logger.exception("Failed to load pending recovery request", extra={"token_ref": token_ref})
            return ConfirmationResult(
                status=ConfirmStatus.TICKET_FAILED,
                ticket_outcome=TicketOutcome.GENERIC_ERROR,
            )

        if record is None:
            logger.info("Account recovery confirmation with unknown token", extra={"token_ref": token_ref})
            return ConfirmationResult(status=ConfirmStatus.BAD_TOKEN)

        if self.clock() - record.created_at > self.token_expiry_seconds:
            return self._reissue(token, record.request)

        try:
            outcome = self.gateway.create_ticket(record.request)
        except Exception:
            logger.exception("Unexpected error while creating account recovery ticket", extra={"token_ref": token_ref})
            outcome = TicketOutcome.GENERIC_ERROR

        if outcome is not TicketOutcome.CREATED:
            # Entry stays so the same link can be retried.
            logger.warning(
                "Account recovery ticket not created for %s",
                record.request.requester_name,
                extra={"token_ref": token_ref, "outcome": outcome.value},
            )
            return ConfirmationResult(status=ConfirmStatus.TICKET_FAILED, ticket_outcome=outcome)

        try:
            self.store.delete(token)
        except Exception:
            logger.exception(
                "Ticket created but pending recovery request could not be deleted",
                extra={"token_ref": token_ref},
            )
        logger.info(
            "Account recovery ticket created for %s",
            record.request.requester_name,
            extra={"token_ref": token_ref, "outcome": outcome.value},
        )
        return ConfirmationResult(status=ConfirmStatus.SUCCESS, ticket_outcome=outcome)

    def _reissue(self, token: str, request: RecoveryTicketRequest) -> ConfirmationResult:
        token_ref = token_reference(token)
        logger.info(
            "Stale account recovery link for %s, sending a new one",
            request.requester_name,
            extra={"token_ref": token_ref},
        )
        try:
            self._issue_confirmation(request)
        except DeliveryError as e:
            return ConfirmationResult(status=ConfirmStatus.RESEND_FAILED, error=str(e))

        try:
            self.store.delete(token)
        except Exception:
            logger.exception("Failed to delete stale recovery request", extra={"token_ref": token_ref})
        return ConfirmationResult(status=ConfirmStatus.RESENT)

    def _validate(self, submission: RecoverySubmission) -> RecoveryTicketRequest:
        username = _clean(submission.username)
        contact_email = _clean(submission.contact_email)
        contact_email_confirm = _clean(submission.contact_email_confirm)
        registered_email = _clean(submission.registered_email)
        description = _clean(submission.description)

        _check_length("username", username, MAX_USERNAME_LENGTH)
        _check_length("contact_email", contact_email, MAX_EMAIL_LENGTH)
        _check_length("contact_email_confirm", contact_email_confirm, MAX_EMAIL_LENGTH)
        _check_length("registered_email", registered_email, MAX_EMAIL_LENGTH)
        _check_length("description", description, MAX_DESCRIPTION_LENGTH)

        if not username:
            raise MissingField("username")
        if not contact_email:
            raise MissingField("contact_email")
        if not contact_email_confirm:
            raise MissingField("contact_email_confirm")

        if not is_strictly_valid_email(contact_email):
            raise InvalidEmail("contact_email")
        if not is_strictly_valid_email(contact_email_confirm):
            raise InvalidEmail("contact_email_confirm")
        if not emails_match(contact_email, contact_email_confirm):
            raise EmailMismatch("contact_email_confirm")

        if registered_email and not is_valid_email(registered_email):
            raise InvalidEmail("registered_email")

        return RecoveryTicketRequest(
            requester_email=contact_email,
            requester_name=username,
            registered_email=registered_email or None,
            description=description or None,
        )

    def _issue_confirmation(self, request: RecoveryTicketRequest) -> str:
        """
        Stash the request under a new token and email the link.

        Returns:
            The new token

        Raises:
            DeliveryError: If the request could not be stashed or the email not sent
        """
        token = self.tokens.generate_recovery_token()
        token_ref = token_reference(token)

        try:
            self.store.put(token, request)
        except Exception as e:
            logger.exception("Failed to stash account recovery request", extra={"token_ref": token_ref})
            raise DeliveryError("Could not save the recovery request") from e

        logger.info(
            "Account recovery request submitted for %s",
            request.requester_name,
            extra={
                "username": request.requester_name,
                "email": mask_email(request.requester_email),
                "token_ref": token_ref,
            },
        )

        body = (
            f"Someone, probably you, asked for help recovering the {self.site_name} "
            f"account \"{request.requester_name}\".\n\n"
            f"To send this request to our support team, open the link below within "
            f"{format_duration(self.token_expiry_seconds)}:\n\n"
            f"{self.confirmation_url(token)}\n\n"
            "If you did not make this request, you can ignore this email."
        )
        try:
            self.email_sender.send(
                request.requester_email,
                self.sender_address,
                f"Confirm your {self.site_name} account recovery request",
                body,
            )
        except DeliveryError as e:
            logger.error(
                "Failed to send account recovery confirmation to %s",
                mask_email(request.requester_email),
                extra={"token_ref": token_ref, "error": str(e)},
            )
            raise
        except Exception as e:
            logger.exception(
                "Unexpected error sending account recovery confirmation",
                extra={"token_ref": token_ref},
            )
            raise DeliveryError("Could not send the confirmation email") from e
        return token
