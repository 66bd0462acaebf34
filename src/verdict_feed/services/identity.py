"""Voter identities as supplied by the session provider."""

from __future__ import annotations

import secrets
from dataclasses import dataclass

from verdict_feed.services.cooldown import cooldown_storage_key

ANONYMOUS_ID_PREFIX = "guest_"


def generate_anonymous_voter_id() -> str:
    """Return a new random anonymous voter id."""
    return f"{ANONYMOUS_ID_PREFIX}{secrets.token_hex(8)}"


@dataclass(frozen=True)
class VoterIdentity:
    """The voter currently in front of the feed.

    ``anonymous_voter_id`` is stable per device and survives logins; the
    username, when present, takes precedence everywhere.
    """

    username: str | None
    anonymous_voter_id: str

    @property
    def voter_id(self) -> str:
        return self.username or self.anonymous_voter_id

    @property
    def is_guest(self) -> bool:
        return not self.username

    @property
    def cooldown_key(self) -> str:
        return cooldown_storage_key(self.username, self.anonymous_voter_id)

    def login(self, username: str) -> VoterIdentity:
        return VoterIdentity(username=username, anonymous_voter_id=self.anonymous_voter_id)

    def logout(self) -> VoterIdentity:
        return VoterIdentity(username=None, anonymous_voter_id=self.anonymous_voter_id)
