"""Server-side vote throttling for the post store."""

from __future__ import annotations

import logging
import math
import time
from collections import deque
from collections.abc import Callable
from threading import Lock

from verdict_feed.core.settings import settings

logger = logging.getLogger(__name__)


class VoteRateLimiter:
    """Rolling-window vote counter with a cool-down once the window is full.

    State is kept in process; a voter who casts ``max_votes`` votes inside
    ``window_seconds`` is refused for ``cooldown_seconds``. Voters whose votes
    have all left the window are forgotten on the next sweep.
    """

    def __init__(
        self,
        max_votes: int,
        window_seconds: float,
        cooldown_seconds: float,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_votes = max_votes
        self.window_seconds = window_seconds
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._lock = Lock()
        self._history: dict[str, deque[float]] = {}
        self._blocked_until: dict[str, float] = {}
        self._last_sweep = clock()

    def acquire(self, voter_id: str) -> int | None:
        """Take a vote slot for ``voter_id``.

        Returns None when the vote may proceed, in which case it has been
        counted. Otherwise returns the remaining cool-down in whole seconds and
        records nothing.
        """
        now = self._clock()
        with self._lock:
            self._sweep(now)

            blocked_until = self._blocked_until.get(voter_id)
            if blocked_until is not None:
                if blocked_until > now:
                    return max(1, math.ceil(blocked_until - now))
                del self._blocked_until[voter_id]

            history = self._history.setdefault(voter_id, deque())
            self._prune(history, now)
            history.append(now)
            if len(history) < self.max_votes:
                return None

            # This vote fills the window; the next one is refused.
            del self._history[voter_id]
            self._blocked_until[voter_id] = now + self.cooldown_seconds

        logger.warning(
            "Voter %s hit the vote rate limit; blocked for %d seconds",
            voter_id,
            math.ceil(self.cooldown_seconds),
        )
        return None

    def _prune(self, history: deque[float], now: float) -> None:
        while history and history[0] <= now - self.window_seconds:
            history.popleft()

    def _sweep(self, now: float) -> None:
        """Drop idle voters and lapsed blocks, at most once per window."""
        if now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        for voter_id in list(self._history):
            history = self._history[voter_id]
            self._prune(history, now)
            if not history:
                del self._history[voter_id]
        for voter_id, blocked_until in list(self._blocked_until.items()):
            if blocked_until <= now:
                del self._blocked_until[voter_id]

    def reset(self) -> None:
        with self._lock:
            self._history.clear()
            self._blocked_until.clear()
            self._last_sweep = self._clock()


class _VoteRateLimiterSingleton:
    """Singleton wrapper for VoteRateLimiter."""

    _instance: VoteRateLimiter | None = None

    @classmethod
    def get_instance(cls) -> VoteRateLimiter:
        if cls._instance is None:
            cls._instance = VoteRateLimiter(
                max_votes=settings.vote_rate_limit_count,
                window_seconds=settings.vote_rate_limit_window_seconds,
                cooldown_seconds=settings.vote_rate_limit_cooldown_seconds,
            )
        return cls._instance


def get_vote_rate_limiter() -> VoteRateLimiter:
    """FastAPI dependency returning the process-wide vote rate limiter."""
    return _VoteRateLimiterSingleton.get_instance()
