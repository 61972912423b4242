"""
Integration tests for PostgresStash.

Tests stash operations against a real PostgreSQL database.
Requires PostgreSQL to be running.
"""

import time
from concurrent.futures import ThreadPoolExecutor

import pytest
from psycopg_pool import ConnectionPool

from emailauth.adapters.repository.postgres import PostgresStash
from emailauth.domain.pending import PendingRequestStore, RecoveryTicketRequest

pytestmark = [pytest.mark.integration, pytest.mark.usefixtures("clean_stash")]


@pytest.fixture
def stash(pool: ConnectionPool) -> PostgresStash:
    """Create stash instance for each test."""
    return PostgresStash(pool)


def expire_now(pool: ConnectionPool, key: str) -> None:
    """Move a row's expiry into the past."""
    with pool.connection() as conn:
        conn.execute(
            "UPDATE recovery_stash SET expires_at = NOW() - INTERVAL '1 second' WHERE key = %s",
            (key,),
        )
        conn.commit()


class TestGetSet:
    def test_round_trip(self, stash: PostgresStash) -> None:
        value = {"ticket_data": {"requester_name": "Alice"}, "generated": 1700000000}
        stash.set("accountrecovery:abc", value, 60)

        assert stash.get("accountrecovery:abc") == value

    def test_missing_key(self, stash: PostgresStash) -> None:
        assert stash.get("accountrecovery:missing") is None

    def test_set_replaces_value(self, stash: PostgresStash, pool: ConnectionPool) -> None:
        stash.set("k", {"v": 1}, 60)
        stash.set("k", {"v": 2}, 60)

        assert stash.get("k") == {"v": 2}
        with pool.connection() as conn:
            count = conn.execute("SELECT COUNT(*) FROM recovery_stash WHERE key = %s", ("k",)).fetchone()[0]
        assert count == 1

    def test_set_resets_ttl(self, stash: PostgresStash, pool: ConnectionPool) -> None:
        stash.set("k", {"v": 1}, 60)
        expire_now(pool, "k")
        stash.set("k", {"v": 2}, 60)

        assert stash.get("k") == {"v": 2}

    def test_unicode_survives(self, stash: PostgresStash) -> None:
        stash.set("k", {"description": "Ça ne marche pas 🔒"}, 60)
        assert stash.get("k") == {"description": "Ça ne marche pas 🔒"}


class TestExpiry:
    def test_expired_key_invisible(self, stash: PostgresStash, pool: ConnectionPool) -> None:
        stash.set("k", {"v": 1}, 60)
        expire_now(pool, "k")

        assert stash.get("k") is None

    def test_short_ttl(self, stash: PostgresStash) -> None:
        stash.set("k", {"v": 1}, 1)
        time.sleep(1.5)
        assert stash.get("k") is None

    def test_purge_expired(self, stash: PostgresStash, pool: ConnectionPool) -> None:
        stash.set("old", {"v": 1}, 60)
        stash.set("new", {"v": 2}, 60)
        expire_now(pool, "old")

        assert stash.purge_expired() == 1
        assert stash.get("new") == {"v": 2}


class TestDelete:
    def test_delete(self, stash: PostgresStash) -> None:
        stash.set("k", {"v": 1}, 60)
        stash.delete("k")
        assert stash.get("k") is None

    def test_delete_absent_is_noop(self, stash: PostgresStash) -> None:
        stash.delete("absent")


class TestConcurrency:
    def test_concurrent_upserts_leave_one_row(self, stash: PostgresStash, pool: ConnectionPool) -> None:
        with ThreadPoolExecutor(max_workers=10) as executor:
            futures = [executor.submit(stash.set, "k", {"v": i}, 60) for i in range(10)]
            for f in futures:
                f.result()

        with pool.connection() as conn:
            count = conn.execute("SELECT COUNT(*) FROM recovery_stash").fetchone()[0]
        assert count == 1


def test_pending_store_over_postgres(stash: PostgresStash) -> None:
    """PendingRequestStore works unchanged on the Postgres stash."""
    store = PendingRequestStore(stash, ttl_seconds=86400)
    request = RecoveryTicketRequest(requester_email="alice@example.org", requester_name="Alice")

    store.put("abc123", request)
    record = store.get("abc123")

    assert record is not None
    assert record.request == request
    store.delete("abc123")
    assert store.get("abc123") is None
