"""Consecutive same-direction vote tracking."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from verdict_feed.schemas.vote import Direction

STREAK_THRESHOLD: Final[int] = 10


@dataclass(frozen=True)
class VoteStreak:
    """Run of votes cast in the same direction."""

    direction: Direction = Direction.UP
    count: int = 0


@dataclass(frozen=True)
class StreakUpdate:
    """New streak plus whether the celebration should pop up."""

    streak: VoteStreak
    trigger_popup: bool


def reset_streak() -> VoteStreak:
    """Return the empty streak used at start-up and after a cooldown."""
    return VoteStreak(direction=Direction.UP, count=0)


def update_vote_streak(
    streak: VoteStreak,
    direction: Direction,
    threshold: int = STREAK_THRESHOLD,
) -> StreakUpdate:
    """Extend or restart the streak with a new vote.

    The popup fires on the exact threshold only, so it shows once per run.
    """
    if streak.direction == direction:
        new_streak = VoteStreak(direction=direction, count=streak.count + 1)
    else:
        new_streak = VoteStreak(direction=direction, count=1)
    return StreakUpdate(streak=new_streak, trigger_popup=new_streak.count == threshold)
