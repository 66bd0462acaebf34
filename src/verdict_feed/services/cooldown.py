"""Exhaustion detection and per-identity vote cool-downs.

Each voter identity moves through a small loop::

    IDLE --(selection empty)--> EXHAUSTED --(end time set)--> COOLING --(expired)--> IDLE

A server rate limit can jump straight to COOLING. The transitions below are
pure functions over :class:`CooldownState`; the voting session owns the state
and persists the end time under :func:`cooldown_storage_key`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Final

from verdict_feed.services.queue_selector import SelectionMode

GUEST_VOTE_LIMIT: Final[int] = 5
COOLDOWN_KEY_PREFIX: Final[str] = "cooldown_"


class CooldownPhase(str, Enum):
    """Observable phase of the cool-down loop."""

    IDLE = "idle"
    EXHAUSTED = "exhausted"
    COOLING = "cooling"


@dataclass(frozen=True)
class CooldownState:
    """Cool-down bookkeeping for one identity.

    ``initialized`` stays False until the selector has populated a selection
    after start-up or after an expiry; exhaustion is never evaluated before
    that, otherwise an expiry would immediately start a new cool-down.
    """

    end_time: float | None = None
    triggered: bool = False
    initialized: bool = False

    @property
    def phase(self) -> CooldownPhase:
        if self.end_time is not None:
            return CooldownPhase.COOLING
        if self.triggered:
            return CooldownPhase.EXHAUSTED
        return CooldownPhase.IDLE


def cooldown_storage_key(username: str | None, anonymous_voter_id: str) -> str:
    """Return the persisted key holding the cool-down end for an identity.

    An empty username counts as no username.
    """
    return f"{COOLDOWN_KEY_PREFIX}{username or anonymous_voter_id}"


def should_trigger_exhaustion(
    *,
    mode: SelectionMode,
    current_post_id: str | None,
    visible_slot_count: int,
    initialized: bool,
    cooldown_end: float | None,
    triggered: bool,
    post_count: int,
    limit_prompt_showing: bool,
) -> bool:
    """Decide whether an empty selection means the voter ran out of posts.

    An empty collection is not exhaustion, neither is an empty selection
    while the guest login prompt is up or before the selector has run.
    """
    if post_count == 0 or limit_prompt_showing:
        return False
    if not initialized:
        return False
    if mode is SelectionMode.FOCUS:
        exhausted = current_post_id is None
    else:
        exhausted = visible_slot_count == 0
    return exhausted and cooldown_end is None and not triggered


def mark_exhausted(state: CooldownState) -> CooldownState:
    """IDLE -> EXHAUSTED."""
    return replace(state, triggered=True)


def start_cooldown(state: CooldownState, now: float, window_seconds: float) -> CooldownState:
    """EXHAUSTED -> COOLING for ``window_seconds``."""
    return replace(state, end_time=now + window_seconds, triggered=True)


def apply_rate_limit(state: CooldownState, now: float, cooldown_seconds: float) -> CooldownState:
    """Enter COOLING directly with the duration the server asked for."""
    return replace(state, end_time=now + max(0.0, float(cooldown_seconds)), triggered=True)


def is_expired(state: CooldownState, now: float) -> bool:
    """Return True once a running cool-down has reached its end time."""
    return state.end_time is not None and now >= state.end_time


def expire(state: CooldownState) -> CooldownState:
    """COOLING -> IDLE; the selection must be recomputed before the next check."""
    return replace(state, end_time=None, triggered=False, initialized=False)


def mark_initialized(state: CooldownState) -> CooldownState:
    return replace(state, initialized=True)


def remaining_seconds(state: CooldownState, now: float) -> int:
    """Whole seconds left in the cool-down, 0 when none is running."""
    if state.end_time is None:
        return 0
    return max(0, math.ceil(state.end_time - now))


def is_guest_at_limit(
    username: str | None,
    guest_vote_count: int,
    limit: int = GUEST_VOTE_LIMIT,
) -> bool:
    """Return True when an anonymous voter has used up the free votes."""
    return not username and guest_vote_count >= limit
