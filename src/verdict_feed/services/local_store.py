"""Per-identity persisted voter state.

The store wraps any ``MutableMapping[str, str]`` (a plain dict in tests, a
``shelve`` or a browser-bridge mapping in a host application) and keeps the
key layout in one place::

    localVotes_<identity>   JSON object {post_id: "up" | "down"}
    cooldown_<identity>     cool-down end as epoch seconds
    guestVoteCount          votes cast while anonymous
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, MutableMapping
from threading import Lock
from typing import Final

from verdict_feed.schemas.vote import Direction

VOTES_KEY_PREFIX: Final[str] = "localVotes_"
GUEST_VOTE_COUNT_KEY: Final[str] = "guestVoteCount"

logger = logging.getLogger(__name__)


class LocalStateStore:
    """Typed access to the voter's persisted key/value state."""

    def __init__(self, backend: MutableMapping[str, str] | None = None) -> None:
        self._backend: MutableMapping[str, str] = backend if backend is not None else {}
        self._lock = Lock()

    # --- Local vote maps -------------------------------------------------------------
    def load_votes(self, voter_id: str) -> dict[str, Direction]:
        """Return the cached vote map for ``voter_id`` (empty when missing or corrupt)."""
        raw = self._backend.get(f"{VOTES_KEY_PREFIX}{voter_id}")
        if not raw:
            return {}
        try:
            data = json.loads(raw)
            return {str(post_id): Direction(value) for post_id, value in data.items()}
        except (ValueError, AttributeError) as exc:
            logger.warning("Discarding unreadable vote cache for %s: %s", voter_id, exc)
            return {}

    def save_votes(self, voter_id: str, votes: Mapping[str, Direction]) -> None:
        payload = {post_id: Direction(value).value for post_id, value in votes.items()}
        with self._lock:
            self._backend[f"{VOTES_KEY_PREFIX}{voter_id}"] = json.dumps(payload)

    def clear_votes(self, voter_id: str) -> None:
        with self._lock:
            self._backend.pop(f"{VOTES_KEY_PREFIX}{voter_id}", None)

    # --- Cool-down end times ---------------------------------------------------------
    def load_cooldown_end(self, key: str) -> float | None:
        raw = self._backend.get(key)
        if raw is None:
            return None
        try:
            return float(raw)
        except ValueError:
            logger.warning("Discarding unreadable cool-down value under %s", key)
            return None

    def save_cooldown_end(self, key: str, end_time: float) -> None:
        with self._lock:
            self._backend[key] = repr(float(end_time))

    def clear_cooldown(self, key: str) -> None:
        with self._lock:
            self._backend.pop(key, None)

    def carry_over_cooldown(self, from_key: str, to_key: str) -> float | None:
        """Copy a running cool-down to another identity's key.

        Returns the copied end time, or None when the source has none. An
        existing later end time on the target is kept.
        """
        end_time = self.load_cooldown_end(from_key)
        if end_time is None or from_key == to_key:
            return end_time
        existing = self.load_cooldown_end(to_key)
        if existing is None or existing < end_time:
            self.save_cooldown_end(to_key, end_time)
            return end_time
        return existing

    # --- Guest vote counter ----------------------------------------------------------
    def guest_vote_count(self) -> int:
        raw = self._backend.get(GUEST_VOTE_COUNT_KEY)
        try:
            return int(raw) if raw is not None else 0
        except ValueError:
            return 0

    def increment_guest_vote_count(self) -> int:
        """Add one guest vote and return the new total."""
        with self._lock:
            count = self.guest_vote_count() + 1
            self._backend[GUEST_VOTE_COUNT_KEY] = str(count)
        return count
