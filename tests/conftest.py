"""
Shared test fixtures and configuration.

Wires the in-memory fakes from tests.fakes into the domain services, so
domain and route tests run without PostgreSQL, an SMTP server or Zendesk.
"""

import pytest

from emailauth.domain.deferred import DeferredTasks
from emailauth.domain.pending import PendingRequestStore
from emailauth.domain.recovery import RecoveryWorkflow
from emailauth.domain.tokens import TokenGenerator
from tests.fakes import (
    CONFIRM_URL_PREFIX,
    FakeClock,
    FakeRateLimiter,
    FakeTicketingGateway,
    InMemoryStash,
    RecordingEmailSender,
)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def stash(clock: FakeClock) -> InMemoryStash:
    return InMemoryStash(clock)


@pytest.fixture
def store(stash: InMemoryStash, clock: FakeClock) -> PendingRequestStore:
    return PendingRequestStore(stash, ttl_seconds=86400, clock=clock)


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def gateway() -> FakeTicketingGateway:
    return FakeTicketingGateway()


@pytest.fixture
def rate_limiter() -> FakeRateLimiter:
    return FakeRateLimiter()


@pytest.fixture
def deferred() -> DeferredTasks:
    return DeferredTasks()


@pytest.fixture
def workflow(
    store: PendingRequestStore,
    gateway: FakeTicketingGateway,
    email_sender: RecordingEmailSender,
    rate_limiter: FakeRateLimiter,
    clock: FakeClock,
) -> RecoveryWorkflow:
    return RecoveryWorkflow(
        store=store,
        gateway=gateway,
        email_sender=email_sender,
        rate_limiter=rate_limiter,
        sender_address="noreply@wiki.example",
        confirmation_url=lambda token: f"{CONFIRM_URL_PREFIX}{token}",
        site_name="Wiki",
        tokens=TokenGenerator(),
        token_expiry_seconds=900,
        clock=clock,
    )
