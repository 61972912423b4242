"""
Pending recovery request storage.

Wraps the Stash port: derives namespaced keys from recovery tokens,
serializes RecoveryTicketRequest payloads together with their creation
time, and treats absence as a normal outcome (bad, expired or already
used token).
"""

import hashlib
import logging
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from typing import Any

from .ports import Stash

logger = logging.getLogger(__name__)

KEY_PREFIX = "accountrecovery"


@dataclass(frozen=True)
class RecoveryTicketRequest:
    """
    A validated account recovery request.

    Attributes:
        requester_email: Contact address, strictly validated
        requester_name: Claimed account username, trimmed
        registered_email: Address the requester believes is on the account
        description: Free text from the requester
    """

    requester_email: str
    requester_name: str
    registered_email: str | None = None
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RecoveryTicketRequest":
        return cls(
            requester_email=data["requester_email"],
            requester_name=data["requester_name"],
            registered_email=data.get("registered_email"),
            description=data.get("description"),
        )


@dataclass(frozen=True)
class PendingRecord:
    """A stashed request and the epoch second it was first written."""

    request: RecoveryTicketRequest
    created_at: float


def make_key(token: str) -> str:
    """Namespaced stash key for a recovery token."""
    return f"{KEY_PREFIX}:{token}"


def token_reference(token: str) -> str:
    """Short, non-reversible token identifier for logs."""
    return hashlib.sha256(token.encode()).hexdigest()[:12]


class PendingRequestStore:
    """
    TTL-bounded persistence of recovery requests keyed by token.

    The TTL is longer than the confirmation window, so a
    stale link can still be recognized and used to trigger a resend.
    """

    def __init__(
        self,
        stash: Stash,
        ttl_seconds: int = 86400,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._stash = stash
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    def put(self, token: str, request: RecoveryTicketRequest) -> None:
        record = {
            "ticket_data": request.to_dict(),
            "generated": int(self._clock()),
        }
        self._stash.set(make_key(token), record, self._ttl_seconds)

    def get(self, token: str) -> PendingRecord | None:
        """Return the stored record, or None when the token is unknown."""
        raw = self._stash.get(make_key(token))
        if raw is None:
            return None

        try:
            return PendingRecord(
                request=RecoveryTicketRequest.from_dict(raw["ticket_data"]),
                created_at=float(raw["generated"]),
            )
        except (KeyError, TypeError, ValueError):
            logger.warning(
                "Discarding malformed pending recovery record",
                extra={"token_ref": token_reference(token)},
            )
            return None

    def delete(self, token: str) -> None:
        self._stash.delete(make_key(token))
