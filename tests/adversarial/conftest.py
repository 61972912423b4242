"""
Shared fixtures for adversarial tests.

Provides the login challenge wiring for brute force and enumeration
tests. Everything runs in memory; no database is needed.
"""

import pytest

from emailauth.domain.challenge import SettingsVerificationPolicy, VerificationChallenge
from emailauth.domain.deferred import DeferredTasks
from emailauth.domain.ports import Account
from emailauth.domain.tokens import TokenGenerator
from tests.fakes import FakeAccountDirectory, RecordingEmailSender

VICTIM = Account(name="Victim", email="victim@example.org", email_confirmed=True)


@pytest.fixture
def audit_log() -> list[tuple[str, str | None]]:
    return []


@pytest.fixture
def challenge(email_sender: RecordingEmailSender, audit_log: list) -> VerificationChallenge:
    """Challenge with 4-digit codes so the whole code space can be swept."""

    class ListAuditLog:
        def record_failed_verification(self, account: Account, ip: str | None) -> None:
            audit_log.append((account.name, ip))

    return VerificationChallenge(
        email_sender=email_sender,
        policy=SettingsVerificationPolicy(require_verification=True),
        accounts=FakeAccountDirectory(VICTIM),
        deferred=DeferredTasks(),
        sender_address="noreply@wiki.example",
        tokens=TokenGenerator(code_digits=4),
        retry_limit=3,
        audit_log=ListAuditLog(),
    )


@pytest.fixture
def victim() -> Account:
    return VICTIM
