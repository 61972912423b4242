"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
Nothing in the domain looks up a collaborator on its own; every
service is assembled here from app state and settings.
"""

from email.utils import formataddr
from functools import lru_cache

from fastapi import BackgroundTasks, Depends, HTTPException, Request, status
from psycopg_pool import ConnectionPool

from emailauth.adapters.ratelimit.limiter import FixedWindowRateLimiter
from emailauth.adapters.repository.postgres import PostgresStash
from emailauth.adapters.smtp.console import ConsoleEmailSender
from emailauth.adapters.ticketing.zendesk import ZendeskTicketingGateway
from emailauth.config.settings import Settings, get_settings
from emailauth.domain.challenge import SettingsVerificationPolicy, VerificationChallenge
from emailauth.domain.deferred import DeferredTasks
from emailauth.domain.pending import PendingRequestStore
from emailauth.domain.ports import AccountDirectory, AuditLog
from emailauth.domain.recovery import RecoveryWorkflow
from emailauth.domain.tokens import TokenGenerator

RECOVERY_CONFIRM_PATH = "/v1/AccountRecovery/confirm/"

# Module-level singleton - ConsoleEmailSender is stateless
_email_sender = ConsoleEmailSender()


def get_pool(request: Request) -> ConnectionPool:
    """
    Get connection pool from app state.

    The pool is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.pool


def get_stash(request: Request) -> PostgresStash:
    """Create stash with connection pool from app state."""
    return PostgresStash(get_pool(request))


def get_email_sender() -> ConsoleEmailSender:
    """Get console email sender (singleton)."""
    return _email_sender


def get_sender_address(settings: Settings) -> str:
    """From header value, e.g. 'Account Security <noreply@example.org>'."""
    return formataddr((settings.email_sender_name, settings.email_sender_address))


@lru_cache
def get_rate_limiter() -> FixedWindowRateLimiter:
    """Get the process-wide rate limiter (singleton)."""
    settings = get_settings()
    return FixedWindowRateLimiter(
        limit=settings.recovery_submit_limit,
        window_seconds=settings.recovery_submit_window_seconds,
        storage_uri=settings.rate_limit_storage_uri,
    )


def get_token_generator(settings: Settings = Depends(get_settings)) -> TokenGenerator:
    return TokenGenerator(code_digits=settings.login_code_digits)


def get_ticketing_gateway(
    request: Request, settings: Settings = Depends(get_settings)
) -> ZendeskTicketingGateway:
    """Create Zendesk gateway with the HTTP client from app state."""
    return ZendeskTicketingGateway(settings, request.app.state.zendesk_client)


def get_recovery_workflow(
    request: Request,
    settings: Settings = Depends(get_settings),
    tokens: TokenGenerator = Depends(get_token_generator),
) -> RecoveryWorkflow:
    """
    Create recovery workflow with injected dependencies.

    Wires together the stash, ticketing gateway, email sender and rate
    limiter for the domain service.
    """
    base_url = settings.public_base_url

    def confirmation_url(token: str) -> str:
        return f"{base_url}{RECOVERY_CONFIRM_PATH}{token}"

    return RecoveryWorkflow(
        store=PendingRequestStore(get_stash(request), ttl_seconds=settings.recovery_stash_ttl_seconds),
        gateway=get_ticketing_gateway(request, settings),
        email_sender=get_email_sender(),
        rate_limiter=get_rate_limiter(),
        sender_address=get_sender_address(settings),
        confirmation_url=confirmation_url,
        site_name=settings.site_name,
        tokens=tokens,
        token_expiry_seconds=settings.recovery_token_expiry_seconds,
    )


def require_account_recovery(settings: Settings = Depends(get_settings)) -> None:
    """Hide the recovery page entirely when the feature is switched off."""
    if not settings.account_recovery_enabled:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Account recovery is not available",
        )


def get_deferred_tasks(background_tasks: BackgroundTasks) -> DeferredTasks:
    """
    Create a per-request deferred work queue.

    The queue is drained by FastAPI after the response has been sent.
    """
    deferred = DeferredTasks()
    background_tasks.add_task(deferred.run_pending)
    return deferred


def get_account_directory(request: Request) -> AccountDirectory:
    """
    Get the host application's account directory from app state.

    Hosts embedding the login challenge set app.state.accounts at startup.
    """
    accounts = getattr(request.app.state, "accounts", None)
    if accounts is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Login verification is not configured",
        )
    return accounts


def get_audit_log(request: Request) -> AuditLog | None:
    """Get the host application's audit log from app.state, if it set one."""
    return getattr(request.app.state, "audit_log", None)


def get_verification_challenge(
    settings: Settings = Depends(get_settings),
    tokens: TokenGenerator = Depends(get_token_generator),
    accounts: AccountDirectory = Depends(get_account_directory),
    audit_log: AuditLog | None = Depends(get_audit_log),
    deferred: DeferredTasks = Depends(get_deferred_tasks),
) -> VerificationChallenge:
    """
    Create the login verification challenge for a host login route.

    Email confirmations triggered by a successful verification run after
    the response via the request's deferred queue.
    """
    return VerificationChallenge(
        email_sender=get_email_sender(),
        policy=SettingsVerificationPolicy(
            require_verification=settings.require_login_verification,
            verify_unconfirmed_emails=settings.verify_unconfirmed_emails,
        ),
        accounts=accounts,
        deferred=deferred,
        sender_address=get_sender_address(settings),
        site_name=settings.site_name,
        tokens=tokens,
        retry_limit=settings.login_retry_limit,
        audit_log=audit_log,
        log_codes=settings.log_login_codes,
    )
