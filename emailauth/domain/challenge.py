"""
Login verification challenge - emailed one-time code state machine.

The host authentication framework calls begin() once the primary login
step has succeeded, and continue_() for every code the user submits.
All per-login state lives in a VerificationSession value owned by the host.

State Machine
=============

    begin:      NOT_REQUIRED -> PASS           (policy says no, or no email)
                NOT_REQUIRED -> ISSUED         (code generated and emailed)
    continue_:  ISSUED/RETRY -> PASS           (code matches)
                ISSUED/RETRY -> RETRY          (empty input, or wrong code within limit)
                ISSUED/RETRY -> FAIL           (wrong code past the retry limit)
                FAIL         -> FAIL           (sticky for the session)

On PASS, an address that was unconfirmed at issuance time is confirmed by
a deferred task, after the response, and only if it is still the account's
unconfirmed address at that point.
"""

import logging
import secrets
from dataclasses import dataclass, field

from .deferred import DeferredTasks
from .exceptions import DeliveryError
from .ports import (
    Account,
    AccountDirectory,
    AuditLog,
    ChallengeMessages,
    ChallengeStatus,
    EmailSender,
    VerificationPolicy,
)
from .tokens import TokenGenerator
from .validation import mask_email

logger = logging.getLogger(__name__)

# Separate logger so codes can be enabled for local debugging without
# turning on debug output for the rest of the package.
code_logger = logging.getLogger("emailauth.codes")

DEFAULT_RETRY_LIMIT = 3


@dataclass
class VerificationSession:
    """
    Per-login challenge state, persisted by the host between requests.

    Attributes:
        issued_code: The code the user must enter, None before begin()
        failure_count: Wrong submissions so far, never decremented
        pending_email_to_confirm: Address to confirm on success, if it was unconfirmed
    """

    issued_code: str | None = None
    failure_count: int = 0
    pending_email_to_confirm: str | None = None


@dataclass(frozen=True)
class ChallengeResponse:
    """What the host should do next, and what to show."""

    status: ChallengeStatus
    message_key: str | None = None
    message: str | None = None
    message_type: str | None = None


class SettingsVerificationPolicy:
    """
    Default policy driven by two configuration switches.

    - require_verification: challenge every login with an email address
    - verify_unconfirmed_emails: also challenge accounts whose address is
      unconfirmed (it is confirmed on success); when False they are exempt
    """

    def __init__(self, require_verification: bool = False, verify_unconfirmed_emails: bool = True) -> None:
        self.require_verification = require_verification
        self.verify_unconfirmed_emails = verify_unconfirmed_emails

    def should_require_verification(self, account: Account) -> bool:
        if not self.require_verification:
            return False
        return account.email_confirmed or self.verify_unconfirmed_emails

    def customize_messages(self, account: Account, defaults: ChallengeMessages) -> ChallengeMessages:
        return defaults


def default_messages(account: Account, site_name: str) -> ChallengeMessages:
    """Stock texts; the code is added to the body separately."""
    return ChallengeMessages(
        prompt=(
            f"A verification code has been sent to {account.email}. "
            "Enter it below to finish logging in."
        ),
        subject=f"{site_name} login verification code",
        body=(
            f"Someone, probably you, is trying to log in to {site_name} "
            f"as {account.name}. If this was you, enter the code below to continue. "
            "If it was not you, change your password."
        ),
    )


def render_body(body: str, code: str) -> str:
    """Append the code on a fixed line that message customization cannot touch."""
    return f"{body}\n\nVerification code: {code}\n"


@dataclass
class VerificationChallenge:
    """
    Domain service for the login verification challenge.

    Collaborators are injected; nothing is looked up globally.
    """

    email_sender: EmailSender
    policy: VerificationPolicy
    accounts: AccountDirectory
    deferred: DeferredTasks
    sender_address: str
    site_name: str = "Wiki"
    tokens: TokenGenerator = field(default_factory=TokenGenerator)
    retry_limit: int = DEFAULT_RETRY_LIMIT
    audit_log: AuditLog | None = None
    log_codes: bool = False

    def begin(self, account: Account, session: VerificationSession, ip: str | None = None) -> ChallengeResponse:
        """
        Start the challenge for a login that passed its primary step.

        Returns PASS without side effects when no verification is required,
        otherwise issues and emails a code and returns ISSUED with the prompt.
        """
        if not account.email or not self.policy.should_require_verification(account):
            return ChallengeResponse(status=ChallengeStatus.PASS)

        code = self.tokens.generate_login_code()
        session.issued_code = code
        session.failure_count = 0
        session.pending_email_to_confirm = None if account.email_confirmed else account.email

        messages = self.policy.customize_messages(account, default_messages(account, self.site_name))

        logger.info(
            "Verification requested for %s",
            account.name,
            extra={
                "user": account.name,
                "ip": ip,
                "outcome": "issued",
                "email_confirmed": account.email_confirmed,
            },
        )
        if self.log_codes:
            code_logger.debug("Login code for %s: %s", account.name, code)

        try:
            self.email_sender.send(
                account.email,
                self.sender_address,
                messages.subject,
                render_body(messages.body, code),
            )
        except DeliveryError as e:
            # The prompt is still shown; the host offers "code not received".
            logger.error(
                "Failed to send verification code to %s",
                mask_email(account.email),
                extra={"user": account.name, "ip": ip, "outcome": "delivery_failed", "error": str(e)},
            )
        except Exception:
            logger.exception(
                "Unexpected error while sending verification code to %s",
                mask_email(account.email),
                extra={"user": account.name, "ip": ip, "outcome": "delivery_failed"},
            )

        return ChallengeResponse(
            status=ChallengeStatus.ISSUED,
            message_key="login-verification-prompt",
            message=messages.prompt,
            message_type="warning",
        )

    def continue_(
        self,
        account: Account,
        session: VerificationSession,
        submitted_code: str | None,
        ip: str | None = None,
    ) -> ChallengeResponse:
        """
        Check one submitted code.

        Empty input re-prompts without counting. A wrong code counts one
        failure; exceeding retry_limit fails the login for this session.
        """
        if session.issued_code is None:
            logger.warning(
                "Verification continued without an issued code for %s",
                account.name,
                extra={"user": account.name, "ip": ip, "outcome": "no_challenge"},
            )
            return self._fail()

        if session.failure_count > self.retry_limit:
            return self._fail()

        submitted = (submitted_code or "").strip()
        if not submitted:
            # Accidental enter or a confused bot; not a guess.
            return self._retry()

        # CRITICAL: constant-time comparison
        if secrets.compare_digest(session.issued_code.encode(), submitted.encode()):
            logger.info(
                "Successful verification for %s",
                account.name,
                extra={"user": account.name, "ip": ip, "outcome": "pass"},
            )
            if session.pending_email_to_confirm:
                self._schedule_email_confirmation(account.name, session.pending_email_to_confirm)
            return ChallengeResponse(status=ChallengeStatus.PASS)

        session.failure_count += 1
        logger.info(
            "Failed verification for %s",
            account.name,
            extra={
                "user": account.name,
                "ip": ip,
                "outcome": "mismatch",
                "failure_count": session.failure_count,
            },
        )
        if self.audit_log is not None:
            try:
                self.audit_log.record_failed_verification(account, ip)
            except Exception:
                logger.exception(
                    "Failed to record failed verification for %s",
                    account.name,
                    extra={"user": account.name, "ip": ip, "outcome": "audit_failed"},
                )

        if session.failure_count > self.retry_limit:
            logger.warning(
                "Verification retry limit reached for %s",
                account.name,
                extra={"user": account.name, "ip": ip, "outcome": "retry_limit"},
            )
            return self._fail()

        return ChallengeResponse(
            status=ChallengeStatus.RETRY,
            message_key="login-verification-failure",
            message="The verification code is incorrect. Please try again.",
            message_type="error",
        )

    def _retry(self) -> ChallengeResponse:
        return ChallengeResponse(
            status=ChallengeStatus.RETRY,
            message_key="login-verification-prompt",
            message_type="warning",
        )

    def _fail(self) -> ChallengeResponse:
        return ChallengeResponse(
            status=ChallengeStatus.FAIL,
            message_key="login-verification-retry-limit",
            message="Too many incorrect verification codes. Please log in again.",
            message_type="error",
        )

    def _schedule_email_confirmation(self, name: str, email: str) -> None:
        accounts = self.accounts

        def confirm_email() -> None:
            # Time has passed since scheduling; the user may have changed address.
            live = accounts.load(name)
            if live is None or live.email != email or live.email_confirmed:
                logger.info(
                    "Skipping deferred email confirmation for %s",
                    name,
                    extra={"user": name, "outcome": "precondition_changed"},
                )
                return
            accounts.mark_email_confirmed(name, email)
            logger.info(
                "Confirmed email address for %s after login verification",
                name,
                extra={"user": name, "outcome": "email_confirmed"},
            )

        self.deferred.add(f"confirm-email:{name}", confirm_email)
