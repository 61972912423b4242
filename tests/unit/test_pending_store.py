"""
Unit tests for PendingRequestStore.

Tests verify key derivation, serialization with creation time,
absence as a normal outcome, idempotent deletion and TTL handling.
"""

import logging

import pytest

from emailauth.domain.pending import PendingRequestStore, RecoveryTicketRequest, make_key, token_reference
from tests.fakes import FakeClock, InMemoryStash

REQUEST = RecoveryTicketRequest(
    requester_email="alice@example.org",
    requester_name="Alice",
    registered_email="old@example.org",
    description="please help",
)


class TestKeys:
    def test_key_is_namespaced(self) -> None:
        assert make_key("abc123") == "accountrecovery:abc123"

    def test_token_reference_is_short_and_stable(self) -> None:
        ref = token_reference("abc123")
        assert ref == token_reference("abc123")
        assert len(ref) == 12
        assert "abc123" not in ref


class TestPutGet:
    def test_round_trip(self, store: PendingRequestStore, clock: FakeClock) -> None:
        """Stored request comes back with its creation time."""
        store.put("abc123", REQUEST)

        record = store.get("abc123")
        assert record is not None
        assert record.request == REQUEST
        assert record.created_at == int(clock())

    def test_record_layout(self, store: PendingRequestStore, stash: InMemoryStash, clock: FakeClock) -> None:
        """Stash holds ticket data plus a generation timestamp."""
        store.put("abc123", REQUEST)

        value, expires_at = stash.entries["accountrecovery:abc123"]
        assert value["ticket_data"]["requester_name"] == "Alice"
        assert value["generated"] == int(clock())
        assert expires_at == clock() + 86400

    def test_unknown_token_is_none(self, store: PendingRequestStore) -> None:
        assert store.get("ffff") is None

    def test_overwrite_replaces_record(self, store: PendingRequestStore, clock: FakeClock) -> None:
        store.put("abc123", REQUEST)
        clock.advance(60)
        other = RecoveryTicketRequest(requester_email="bob@example.org", requester_name="Bob")
        store.put("abc123", other)

        record = store.get("abc123")
        assert record is not None
        assert record.request == other
        assert record.created_at == int(clock())

    def test_optional_fields_survive_as_none(self, store: PendingRequestStore) -> None:
        minimal = RecoveryTicketRequest(requester_email="bob@example.org", requester_name="Bob")
        store.put("abc123", minimal)

        record = store.get("abc123")
        assert record is not None
        assert record.request.registered_email is None
        assert record.request.description is None

    def test_record_gone_after_ttl(self, store: PendingRequestStore, clock: FakeClock) -> None:
        store.put("abc123", REQUEST)
        clock.advance(86400)
        assert store.get("abc123") is None

    def test_record_outlives_confirmation_window(self, store: PendingRequestStore, clock: FakeClock) -> None:
        """A stale link can still be recognized well after 15 minutes."""
        store.put("abc123", REQUEST)
        clock.advance(3600)
        assert store.get("abc123") is not None


class TestMalformedRecords:
    @pytest.mark.parametrize(
        "value",
        [
            {"generated": 1},
            {"ticket_data": {"requester_name": "Alice"}, "generated": 1},
            {"ticket_data": REQUEST.to_dict(), "generated": "yesterday"},
            {"ticket_data": None, "generated": 1},
        ],
    )
    def test_malformed_record_treated_as_absent(
        self,
        value: dict,
        stash: InMemoryStash,
        store: PendingRequestStore,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        stash.set(make_key("abc123"), value, 60)

        with caplog.at_level(logging.WARNING):
            assert store.get("abc123") is None

        assert "malformed" in caplog.text


class TestDelete:
    def test_delete_removes_record(self, store: PendingRequestStore) -> None:
        store.put("abc123", REQUEST)
        store.delete("abc123")
        assert store.get("abc123") is None

    def test_delete_is_idempotent(self, store: PendingRequestStore) -> None:
        store.delete("abc123")
        store.delete("abc123")

    def test_delete_only_touches_its_token(self, store: PendingRequestStore) -> None:
        store.put("aaaa", REQUEST)
        store.put("bbbb", REQUEST)
        store.delete("aaaa")
        assert store.get("bbbb") is not None


def test_custom_ttl_passed_to_stash(clock: FakeClock) -> None:
    stash = InMemoryStash(clock)
    store = PendingRequestStore(stash, ttl_seconds=120, clock=clock)
    store.put("abc123", REQUEST)
    assert stash.entries["accountrecovery:abc123"][1] == clock() + 120
