"""
End-to-end account recovery through the real application.

Runs the FastAPI app with its lifespan (PostgreSQL pool and migrations),
the console email sender and a mocked Zendesk transport.
Requires PostgreSQL to be running.
"""

import json
import logging
from collections.abc import Generator

import httpx
import pytest
from fastapi.testclient import TestClient
from psycopg_pool import ConnectionPool

from emailauth.api.dependencies import get_rate_limiter
from emailauth.api.main import app
from emailauth.config.settings import get_settings
from tests.fakes import TOKEN_IN_BODY

pytestmark = [pytest.mark.integration, pytest.mark.usefixtures("clean_stash")]

FORM = {
    "username": "Alice",
    "contact_email": "alice@example.org",
    "contact_email_confirm": "alice@example.org",
    "registered_email": "old@example.org",
    "description": "Lost my phone and my old mailbox.",
}


class ZendeskRecorder:
    def __init__(self) -> None:
        self.payloads: list[dict] = []
        self.status = 201

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.payloads.append(json.loads(request.content))
        return httpx.Response(self.status, json={"request": {"id": len(self.payloads)}})


@pytest.fixture
def zendesk() -> ZendeskRecorder:
    return ZendeskRecorder()


@pytest.fixture
def client(
    pool: ConnectionPool, zendesk: ZendeskRecorder, monkeypatch: pytest.MonkeyPatch
) -> Generator[TestClient, None, None]:
    """Application client with recovery enabled; depends on pool so it skips without a database."""
    monkeypatch.setenv("ACCOUNT_RECOVERY_ENABLED", "true")
    monkeypatch.setenv("PUBLIC_BASE_URL", "https://wiki.example")
    monkeypatch.setenv("ZENDESK_URL", "https://support.example.zendesk.com")
    monkeypatch.setenv("ZENDESK_EMAIL", "bot@example.org")
    monkeypatch.setenv("ZENDESK_TOKEN", "secret-token")
    get_settings.cache_clear()
    get_rate_limiter.cache_clear()

    with TestClient(app) as test_client:
        app.state.zendesk_client.close()
        app.state.zendesk_client = httpx.Client(transport=httpx.MockTransport(zendesk))
        yield test_client

    get_settings.cache_clear()
    get_rate_limiter.cache_clear()


def last_token(caplog: pytest.LogCaptureFixture) -> str:
    tokens = TOKEN_IN_BODY.findall(caplog.text)
    assert tokens, "no confirmation link logged"
    return tokens[-1]


def test_submit_and_confirm(
    client: TestClient, zendesk: ZendeskRecorder, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.DEBUG, logger="emailauth.adapters.smtp.console"):
        response = client.post("/v1/AccountRecovery", json=FORM)
    assert response.status_code == 202

    token = last_token(caplog)
    response = client.get(f"/v1/AccountRecovery/confirm/{token}")

    assert response.status_code == 200
    assert response.json()["message_key"] == "account-recovery-success"
    (payload,) = zendesk.payloads
    assert payload["request"]["requester"] == {"email": "alice@example.org", "name": "Alice"}

    assert client.get(f"/v1/AccountRecovery/confirm/{token}").status_code == 404


def test_ticket_failure_then_retry(
    client: TestClient, zendesk: ZendeskRecorder, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.DEBUG, logger="emailauth.adapters.smtp.console"):
        client.post("/v1/AccountRecovery", json=FORM)
    token = last_token(caplog)

    zendesk.status = 503
    assert client.get(f"/v1/AccountRecovery/confirm/{token}").status_code == 502

    zendesk.status = 201
    assert client.get(f"/v1/AccountRecovery/confirm/{token}").status_code == 200
    assert len(zendesk.payloads) == 2


def test_stale_link_resent(
    client: TestClient, pool: ConnectionPool, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.DEBUG, logger="emailauth.adapters.smtp.console"):
        client.post("/v1/AccountRecovery", json=FORM)
        old_token = last_token(caplog)

        # Backdate the stored creation time past the 15 minute window
        with pool.connection() as conn:
            conn.execute(
                "UPDATE recovery_stash SET value = jsonb_set(value, '{generated}', to_jsonb((value->>'generated')::bigint - 3600))"
            )
            conn.commit()

        response = client.get(f"/v1/AccountRecovery/confirm/{old_token}")

    assert response.status_code == 202
    new_token = last_token(caplog)
    assert new_token != old_token
    assert client.get(f"/v1/AccountRecovery/confirm/{old_token}").status_code == 404


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "healthy"}
